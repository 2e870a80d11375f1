#!/usr/bin/env python3
"""
Fine-tune a model exported from Keras.

Loads the Keras architecture JSON and its HDF5 weights, freezes the
convolutional layers and retrains the dense head on (Fashion-)MNIST
archives found in ``data.data_dir``.

Usage:
    python examples/transfer_learning.py -c configs/lenet.yaml \\
        --model-config models/lenet/modelConfig.json \\
        --weights models/lenet/mnist_weights_only.h5
"""

from __future__ import annotations

from pathlib import Path

import click
import torch

from kerasdl import Conv2D, Dataset, Losses, Metrics, Sequential, build_optimizer
from kerasdl.datasets import mnist
from kerasdl.utils import load_config, setup_logging


@click.command()
@click.option("--config", "-c", type=click.Path(exists=True), required=True,
              help="Path to YAML configuration file.")
@click.option("--model-config", "-m", type=click.Path(exists=True), required=True,
              help="Keras model configuration (JSON).")
@click.option("--weights", "-w", type=click.Path(exists=True), required=True,
              help="Keras weights file (HDF5).")
@click.option("--freeze / --no-freeze", default=True,
              help="Keep the Conv2D weights from the file fixed during training.")
def main(config: str, model_config: str, weights: str, freeze: bool) -> None:
    """Load a Keras model, evaluate it, fine-tune it and evaluate again."""
    cfg = load_config(config)
    logger = setup_logging(cfg["logging"]["level"], cfg["logging"]["log_file"])
    torch.manual_seed(cfg["experiment"]["seed"])

    data_dir = Path(cfg["data"]["data_dir"])
    train, test = Dataset.create_train_and_test_datasets(
        data_dir / mnist.TRAIN_IMAGES_ARCHIVE,
        data_dir / mnist.TRAIN_LABELS_ARCHIVE,
        data_dir / mnist.TEST_IMAGES_ARCHIVE,
        data_dir / mnist.TEST_LABELS_ARCHIVE,
        mnist.NUMBER_OF_CLASSES,
        mnist.extract_images,
        mnist.extract_labels,
    )

    training = cfg["training"]
    with Sequential.load_model_configuration(model_config, device=cfg["experiment"]["device"]) as model:
        if freeze:
            for layer in model.layers:
                if isinstance(layer, Conv2D):
                    layer.trainable = False

        model.compile(
            build_optimizer(cfg["optimizer"]),
            Losses.SOFT_MAX_CROSS_ENTROPY_WITH_LOGITS,
            Metrics.ACCURACY,
        )
        click.echo(model.summary())
        model.load_weights(weights)

        before = model.evaluate(test, batch_size=training["test_batch_size"])
        logger.info("Accuracy before training: %.4f", before.metrics[Metrics.ACCURACY])

        model.fit(
            train,
            epochs=training["epochs"],
            batch_size=training["batch_size"],
            validation_rate=training["validation_rate"],
            validation_batch_size=training["validation_batch_size"],
            verbose=training["verbose"],
        )
        after = model.evaluate(test, batch_size=training["test_batch_size"])

    click.echo(f"\nAccuracy: {before.metrics[Metrics.ACCURACY]:.4f} -> {after.metrics[Metrics.ACCURACY]:.4f}")


if __name__ == "__main__":
    main()
