# main_check.py

import sys
import logging

from ragroom.config import IngestionSettings
from ragroom.service_check import check_models


def main() -> int:
    """Exit 0 when the embedding service is up and both configured models are pulled."""
    settings = IngestionSettings()
    logging.basicConfig(level=settings.log_level.upper(), format='%(asctime)s - %(levelname)s - %(message)s')
    status = check_models(settings)
    return 0 if status and all(status.values()) else 1


if __name__ == "__main__":
    sys.exit(main())
