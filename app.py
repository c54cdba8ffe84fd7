"""Field survey design run.

Draws a balanced sample of survey locations for the region described in
the survey config and writes the field table. The config path is taken
from FIELDSURVEY_CFG, or ``survey_config.toml`` next to this file.
"""

import logging
import os
from pathlib import Path

from fieldsurvey.model.survey_config import load_survey_config
from fieldsurvey.scripts.logger import setup_logging
from fieldsurvey.scripts.processing import run_survey_design

setup_logging()
logger = logging.getLogger("fieldsurvey")

DEFAULT_CFG = Path(__file__).parent / "survey_config.toml"


def main():
    cfg_path = Path(os.getenv("FIELDSURVEY_CFG") or DEFAULT_CFG)
    logger.debug(f"Using survey config {cfg_path}")

    config = load_survey_config(cfg_path)
    table = run_survey_design(config)

    logger.info(f"{len(table)} survey points written to {config.output_csv}")
    return table


if __name__ == "__main__":
    main()
