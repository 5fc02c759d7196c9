#!/usr/bin/env python3
"""
Model Selection Script

Selects the best multiclass classifier for a labeled CSV dataset and saves it together
with its selection summary and train / holdout metrics.

The script runs the following phases:
1. Load and validate configuration, optionally overridden by a run parameters file
2. Infer feature types and assemble the numeric predictors into one feature vector
3. Search the configured candidates with cross validation or a train / validation split
4. Save the fitted selector and its metadata into the output directory
5. Optionally evaluate on a holdout dataset and score a dataset

Usage:
    python run.py --config path/to/config.yaml [--params path/to/params.json] [--verbose]
"""

import json
import logging
import os
import sys
from typing import List, Optional, Tuple

import click
import pandas as pd

from modelselect.dataset import FeatureBuilder, FeatureRef
from modelselect.params import OpParams
from modelselect.scripts.model_selection.config import ModelSelectionConfig
from modelselect.selection import DataCutter, DataSplitter, FittedModelSelector, MultiClassificationModelSelector
from modelselect.shared.evaluation import Evaluators

PREDICTIONS_FILE = "predictions.csv"


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the script."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s - %(levelname)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S")


def load_config(config_file: str, params_file: Optional[str] = None) -> ModelSelectionConfig:
    """
    Load the configuration and apply run parameters on top of it

    Args:
        config_file: Path to YAML configuration file
        params_file: Optional JSON or YAML run parameters file

    Returns:
        Validated configuration
    """
    config = ModelSelectionConfig.from_yaml(config_file)
    if params_file:
        logging.info(f"Applying run parameters from: {params_file}")
        config = config.with_params(OpParams.from_file(params_file))
    config.validate()
    return config


def select_predictors(predictors: List[FeatureRef], feature_columns: Optional[List[str]]) -> List[FeatureRef]:
    """
    Pick the predictors that make up the feature vector

    Args:
        predictors: All predictor references of the dataset
        feature_columns: Explicit column names, or None for every numeric predictor

    Returns:
        Predictor references in vector order
    """
    if feature_columns is not None:
        by_name = {ref.name: ref for ref in predictors}
        missing = [name for name in feature_columns if name not in by_name]
        if missing:
            raise ValueError(f"Feature columns {missing} not found. Available columns: {list(by_name)}")
        return [by_name[name] for name in feature_columns]

    selected = [ref for ref in predictors if ref.feature_type.is_numeric]
    skipped = [ref.name for ref in predictors if not ref.feature_type.is_numeric]
    if skipped:
        logging.warning(f"Skipping non-numeric columns: {skipped}")
    return selected


def prepare_frame(
    path: str, config: ModelSelectionConfig, predictors: Optional[List[FeatureRef]] = None
) -> Tuple[pd.DataFrame, Optional[FeatureRef], List[FeatureRef], FeatureRef]:
    """
    Read a CSV file and add the feature vector column

    Args:
        path: CSV file
        config: Run configuration
        predictors: Predictors of the training data; inferred from the file when None. When given,
            the label column is not required and no label reference is returned.

    Returns:
        Tuple of (frame with vector column, label reference, predictors, vector reference)
    """
    logging.info(f"Loading dataset from: {path}")
    df = pd.read_csv(path)
    label = None
    if predictors is None:
        label, all_predictors = FeatureBuilder.from_dataframe(df, response=config.label_column)
        predictors = select_predictors(all_predictors, config.feature_columns)
    df, features = FeatureBuilder.vectorize(df, predictors)
    logging.info(f"Loaded {len(df)} rows with {len(predictors)} predictors")
    return df, label, predictors, features


def build_selector(config: ModelSelectionConfig) -> MultiClassificationModelSelector:
    """Create and configure the selector described by the configuration"""
    splitter = None
    if config.splitter.enabled:
        if config.splitter.kind == "cutter":
            splitter = DataCutter(
                seed=config.random_state,
                reserve_test_fraction=config.splitter.reserve_test_fraction,
                max_label_categories=config.splitter.max_label_categories,
                min_label_fraction=config.splitter.min_label_fraction,
            )
        else:
            splitter = DataSplitter(seed=config.random_state, reserve_test_fraction=config.splitter.reserve_test_fraction)

    common = dict(
        splitter=splitter,
        validation_metric=Evaluators.from_name(config.validation_metric),
        train_test_evaluators=[Evaluators.from_name(name) for name in config.evaluators],
        seed=config.random_state,
        stratify=config.stratify,
        parallelism=config.parallelism,
        max_wait=config.max_wait,
    )
    if config.validation_type == "cv":
        selector = MultiClassificationModelSelector.with_cross_validation(num_folds=config.num_folds, **common)
    else:
        selector = MultiClassificationModelSelector.with_train_validation_split(train_ratio=config.train_ratio, **common)

    enabled_models = config.get_enabled_models()
    if enabled_models:
        selector.set_models_to_try(*[model.name for model in enabled_models])
        for model in enabled_models:
            if model.hyperparameters:
                selector.set_params(model.name, **model.hyperparameters)
    selector.set_model_thresholds(config.thresholds)
    return selector


def write_predictions(fitted: FittedModelSelector, df: pd.DataFrame, output_file: str) -> None:
    """
    Score a frame and save the predictions as CSV; vector columns are written as JSON lists

    Args:
        fitted: Fitted selector
        df: Frame holding the feature vector column
        output_file: Path to output CSV file
    """
    scored = fitted.transform(df)
    prediction_ref, raw_ref, probability_ref = fitted.get_output()
    features = fitted.stage1.features.name

    for column in (features, raw_ref.name, probability_ref.name):
        scored[column] = [json.dumps([float(v) for v in row]) for row in scored[column]]

    os.makedirs(os.path.dirname(output_file) or ".", exist_ok=True)
    scored.to_csv(output_file, index=False)
    logging.info(f"Predictions saved: {len(scored)} rows to {output_file}")


def run_model_selection(config: ModelSelectionConfig) -> FittedModelSelector:
    """
    Run model selection as described by the configuration

    Args:
        config: Validated configuration

    Returns:
        The fitted selector
    """
    df, label, predictors, features = prepare_frame(config.dataset_path, config)

    selector = build_selector(config).set_input(label, features)
    fitted = selector.fit(df)

    summary = fitted.metadata.summary
    logging.info(f"Best model: {summary.best_model_name} with {summary.best_model_params}")
    logging.info(f"Training evaluation: {fitted.metadata.training_eval}")

    if config.holdout_path:
        holdout_df, _, _, _ = prepare_frame(config.holdout_path, config, predictors)
        fitted.evaluate_model(holdout_df)

    fitted.save(config.output_dir)

    if config.score_path:
        score_df, _, _, _ = prepare_frame(config.score_path, config, predictors)
        predictions_path = config.predictions_path or os.path.join(config.output_dir, PREDICTIONS_FILE)
        write_predictions(fitted, score_df, predictions_path)

    return fitted


@click.command()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, dir_okay=False, readable=True),
    required=True,
    help="Path to YAML configuration file",
)
@click.option(
    "--params",
    "-p",
    type=click.Path(exists=True, dir_okay=False, readable=True),
    default=None,
    help="Path to JSON or YAML run parameters overriding locations and stage settings",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
def main(config: str, params: Optional[str], verbose: bool):
    """
    Select, fit and save the best multiclass classifier for a CSV dataset.

    Examples:

        python run.py --config config.yaml

        python run.py --config config.yaml --params params.json --verbose
    """
    setup_logging(verbose)

    try:
        logging.info(f"Loading configuration from: {config}")
        config_obj = load_config(config, params)

        run_model_selection(config_obj)

        logging.info("Model selection completed successfully")

    except Exception as e:
        logging.error(f"Script failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
