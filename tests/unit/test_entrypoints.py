"""Tests for the command-line entry points and their exit codes."""

from __future__ import annotations

import os
from unittest.mock import patch

import pytest

import main_check
import main_ingestion
import main_rag
from helpers import write_file
from ragroom.embedding_client import EmbeddingClient
from ragroom.ingestion_manager import IngestionManager
from ragroom.models import IngestionReport, RunState


@pytest.fixture
def env(tmp_path, monkeypatch):
    """Points the entry points at a throwaway corpus and an unreachable embedding service."""
    for name in list(os.environ):
        if name.startswith("RAGROOM_"):
            monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)
    corpus = tmp_path / "corpus"
    corpus.mkdir()
    monkeypatch.setenv("RAGROOM_CORPUS_ROOT", str(corpus))
    monkeypatch.setenv("RAGROOM_DATA_PATH", str(tmp_path / "data"))
    monkeypatch.setenv("RAGROOM_SERVICE_HOST", "http://127.0.0.1:9")
    monkeypatch.setenv("RAGROOM_REQUEST_TIMEOUT", "2")
    monkeypatch.setenv("RAGROOM_RETRY_BUDGET", "1")
    monkeypatch.setenv("RAGROOM_RETRY_BACKOFF", "0")
    return corpus


# ---------------------------------------------------------------------------
# main_ingestion
# ---------------------------------------------------------------------------


class TestIngestionExitCodes:
    def test_missing_corpus_is_fatal(self, env, tmp_path, monkeypatch):
        monkeypatch.setenv("RAGROOM_CORPUS_ROOT", str(tmp_path / "nowhere"))

        assert main_ingestion.main() == main_ingestion.EXIT_FATAL

    def test_invalid_configuration_is_fatal(self, env, monkeypatch):
        monkeypatch.setenv("RAGROOM_CHUNK_SIZE", "lots")

        assert main_ingestion.main() == main_ingestion.EXIT_FATAL

    def test_empty_corpus_succeeds_without_creating_an_index(self, env, tmp_path):
        assert main_ingestion.main() == main_ingestion.EXIT_OK
        assert not (tmp_path / "data" / "store").exists()

    def test_unreachable_embedding_service_is_fatal(self, env):
        write_file(env / "a.txt", "Some content to embed.")

        assert main_ingestion.main() == main_ingestion.EXIT_FATAL

    def test_cancelled_run_exits_130(self, env):
        with patch.object(IngestionManager, "run_ingestion_scan", return_value=IngestionReport(state=RunState.CANCELLED)):
            assert main_ingestion.main() == main_ingestion.EXIT_CANCELLED

    def test_reset_clears_before_scanning(self, env, monkeypatch):
        monkeypatch.setenv("RAGROOM_RESET_INDEX", "true")

        with patch.object(IngestionManager, "clear_all_ingested_data") as clear, \
                patch.object(IngestionManager, "run_ingestion_scan", return_value=IngestionReport(state=RunState.DONE)):
            assert main_ingestion.main() == main_ingestion.EXIT_OK

        clear.assert_called_once()

    def test_clients_are_closed_after_the_run(self, env):
        with patch.object(EmbeddingClient, "close") as close_embedding:
            assert main_ingestion.main() == main_ingestion.EXIT_OK

        close_embedding.assert_called_once()


# ---------------------------------------------------------------------------
# main_rag
# ---------------------------------------------------------------------------


class TestRag:
    def test_answer_context_falls_back_to_notice(self):
        with patch.object(main_rag, "Retriever") as retriever_cls:
            retriever = retriever_cls.return_value
            retriever.build_context.return_value = None

            assert main_rag.answer_context(retriever, "why?") == "No relevant information was found in the knowledge base."

    def test_single_question_from_arguments(self, env, capsys):
        with patch.object(main_rag, "Retriever") as retriever_cls:
            retriever_cls.return_value.build_context.return_value = "Context:\nabc\n\nQuestion: why?"

            assert main_rag.main(["why?"]) == 0

        retriever_cls.return_value.build_context.assert_called_once_with("why?")
        assert "Question: why?" in capsys.readouterr().out
        retriever_cls.return_value.qdrant_manager.close.assert_called_once()
        retriever_cls.return_value.embedding_client.close.assert_called_once()

    def test_quoted_question_is_passed_through(self, env, capsys):
        with patch.object(main_rag, "Retriever") as retriever_cls:
            retriever_cls.return_value.build_context.return_value = None

            assert main_rag.main(['"Dune"', "author?"]) == 0

        retriever_cls.return_value.build_context.assert_called_once_with('"Dune" author?')

    def test_interactive_loop_stops_on_exit(self, env, capsys):
        with patch.object(main_rag, "Retriever") as retriever_cls, \
                patch("builtins.input", side_effect=["", "first question", "exit"]):
            retriever_cls.return_value.build_context.return_value = None

            assert main_rag.main([]) == 0

        retriever_cls.return_value.build_context.assert_called_once_with("first question")
        out = capsys.readouterr().out
        assert "Please enter a query." in out
        assert "No relevant information" in out


# ---------------------------------------------------------------------------
# main_check
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("status", "code"),
    [
        ({"bge-m3:latest": True, "gemma3:1b": True}, 0),
        ({"bge-m3:latest": True, "gemma3:1b": False}, 1),
        ({}, 1),
    ],
)
def test_check_exit_code(env, status, code):
    with patch.object(main_check, "check_models", return_value=status):
        assert main_check.main() == code
