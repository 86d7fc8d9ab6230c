"""
16S Group Contrast Pipeline
----------------------------------------------------------------------------------------
Exploratory comparison of two predefined sample groups in 16S rRNA amplicon count
data: alpha and beta diversity, PERMANOVA, SIMPER discriminant taxa, and per-group
Spearman co-occurrence networks, with Benjamini-Hochberg correction of per-taxon
tests.
"""
# ===================================== IMPORTS ====================================== #

# Standard Library Imports
import argparse
import logging
import sys
import traceback
from pathlib import Path

# Third-Party Imports
import pandas as pd

# Local Imports
parent_dir = Path(__file__).resolve().parents[1]
sys.path.append(str(parent_dir / "src"))

from contrast_16s import constants
from contrast_16s.analysis import ContrastAnalysis, ContrastResults
from contrast_16s.config import get_config
from contrast_16s.logger import setup_logging

# ========================== INITIALIZATION & CONFIGURATION ========================== #

pd.set_option('display.max_colwidth', None)

# =================================== MAIN WORKFLOW ================================== #

class WorkflowError(Exception):
    """Custom exception for workflow-related errors."""
    pass


class ContrastWorkflow:
    def __init__(
        self,
        config_path: Path = constants.DEFAULT_CONFIG_PATH,
        verbose: bool = False
    ) -> None:
        self.config = get_config(config_path)
        project_config = self.config.get("project", {})
        self.logger = setup_logging(
            project_config.get("log_dir"),
            console_level=logging.DEBUG if verbose else logging.INFO
        )
        self.results = None

    def run(self) -> ContrastResults:
        """Execute the pipeline based on configuration settings."""
        try:
            analysis = ContrastAnalysis(self.config)
            self.results = analysis.run_from_files()
        except Exception as e:
            self.logger.error(f"Workflow execution failed: {e}\n"
                              f"Traceback: {traceback.format_exc()}")
            raise WorkflowError("Workflow aborted due to errors") from e

        self._report()
        return self.results

    def _report(self) -> None:
        res = self.results
        if res.alpha_tests is not None:
            self.logger.info(f"Alpha diversity tests:\n{res.alpha_tests}")
        self.logger.info(f"PERMANOVA: {res.permanova}")
        self.logger.info(f"Discriminant taxa:\n{res.discriminant_taxa}")
        self.logger.info(f"Network summaries:\n{res.network_summaries()}")
        self.logger.info(f"Hub taxa:\n{res.hub_taxa}")


def main(config_path: Path = constants.DEFAULT_CONFIG_PATH, verbose: bool = False) -> None:
    """Run the entire workflow."""
    workflow = ContrastWorkflow(config_path, verbose)
    workflow.run()


if __name__ == "__main__":
    # Get custom config.yaml file from system arguments
    parser = argparse.ArgumentParser(description="Run 16S group contrast pipeline.")
    parser.add_argument(
        "--config",
        type=Path,
        default=constants.DEFAULT_CONFIG_PATH,
        help="Path to the configuration file.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Show DEBUG messages on the console.",
    )
    args = parser.parse_args()
    main(args.config, args.verbose)
