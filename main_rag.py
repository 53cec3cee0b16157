# main_rag.py

import sys
import logging
from typing import List, Optional

from ragroom.config import IngestionSettings
from ragroom.retriever import Retriever

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'


def answer_context(retriever: Retriever, question: str) -> str:
    """Returns the context block for the question, or a notice when nothing relevant was found."""
    context = retriever.build_context(question)
    if context is None:
        return "No relevant information was found in the knowledge base."
    return context


def main(argv: Optional[List[str]] = None) -> int:
    """
    Prints the retrieval context block for a question.
    With arguments, answers that single question; otherwise reads questions until 'exit'.
    """
    settings = IngestionSettings()
    logging.basicConfig(level=settings.log_level.upper(), format=LOG_FORMAT)
    retriever = Retriever(settings)

    try:
        question = " ".join(argv or []).strip()
        if question:
            print(answer_context(retriever, question))
            return 0

        print("\n--- Ready. Ask a question or type 'exit' to quit. ---\n")
        while True:
            try:
                user_query = input("You: ").strip()
            except EOFError:
                break
            if user_query.lower() in ["exit", "quit"]:
                break
            if not user_query:
                print("Please enter a query.")
                continue
            print(answer_context(retriever, user_query))
        return 0
    finally:
        retriever.qdrant_manager.close()
        retriever.embedding_client.close()


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
