#!/usr/bin/env python3
"""
Train the classic LeNet-5 on MNIST.

The four gzip IDX archives (``train-images-idx3-ubyte.gz`` etc.) are
expected in ``data.data_dir`` of the configuration.

Usage:
    python examples/lenet_classic.py --config configs/lenet.yaml
    python examples/lenet_classic.py -c configs/lenet.yaml --epochs 1 --device cpu
"""

from __future__ import annotations

from pathlib import Path

import click
import torch

from kerasdl import (
    Activations,
    Constant,
    Conv2D,
    ConvPadding,
    Dataset,
    Dense,
    Flatten,
    GlorotNormal,
    Input,
    Losses,
    MaxPool2D,
    Metrics,
    Sequential,
    Zeros,
    build_optimizer,
)
from kerasdl.datasets import mnist
from kerasdl.utils import load_config, setup_logging


def build_lenet(seed: int, device: str) -> Sequential:
    return Sequential.of(
        Input(mnist.IMAGE_SIZE, mnist.IMAGE_SIZE, mnist.NUM_CHANNELS, name="x"),
        Conv2D(6, (5, 5), activation=Activations.TANH, kernel_initializer=GlorotNormal(seed),
               bias_initializer=Zeros(), padding=ConvPadding.SAME, name="conv2d_1"),
        MaxPool2D((2, 2), (2, 2), padding=ConvPadding.VALID, name="maxPool_1"),
        Conv2D(16, (5, 5), activation=Activations.TANH, kernel_initializer=GlorotNormal(seed),
               bias_initializer=Zeros(), padding=ConvPadding.SAME, name="conv2d_2"),
        MaxPool2D((2, 2), (2, 2), padding=ConvPadding.VALID, name="maxPool_2"),
        Flatten(),
        Dense(120, Activations.TANH, GlorotNormal(seed), Constant(0.1), name="dense_1"),
        Dense(84, Activations.TANH, GlorotNormal(seed), Constant(0.1), name="dense_2"),
        Dense(mnist.NUMBER_OF_CLASSES, Activations.LINEAR, GlorotNormal(seed), Constant(0.1), name="dense_3"),
        device=device,
    )


@click.command()
@click.option("--config", "-c", type=click.Path(exists=True), required=True,
              help="Path to YAML configuration file.")
@click.option("--epochs", "-e", type=int, default=None, help="Override number of training epochs.")
@click.option("--batch-size", "-b", type=int, default=None, help="Override batch size.")
@click.option("--device", "-d", type=click.Choice(["auto", "cpu", "cuda", "mps"]), default=None,
              help="Override compute device.")
def main(config: str, epochs: int | None, batch_size: int | None, device: str | None) -> None:
    """Train LeNet-5 on MNIST and report the test accuracy."""
    cfg = load_config(config)
    if epochs is not None:
        cfg["training"]["epochs"] = epochs
    if batch_size is not None:
        cfg["training"]["batch_size"] = batch_size
    if device is not None:
        cfg["experiment"]["device"] = device

    logger = setup_logging(cfg["logging"]["level"], cfg["logging"]["log_file"])
    seed = cfg["experiment"]["seed"]
    torch.manual_seed(seed)

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
    logger.info("Loaded MNIST: %d train / %d test images", len(train), len(test))

    training = cfg["training"]
    with build_lenet(seed, cfg["experiment"]["device"]) as model:
        model.compile(
            build_optimizer(cfg["optimizer"]),
            Losses.SOFT_MAX_CROSS_ENTROPY_WITH_LOGITS,
            Metrics.ACCURACY,
        )
        click.echo(model.summary())
        model.fit(
            train,
            epochs=training["epochs"],
            batch_size=training["batch_size"],
            validation_rate=training["validation_rate"],
            validation_batch_size=training["validation_batch_size"],
            verbose=training["verbose"],
        )
        result = model.evaluate(test, batch_size=training["test_batch_size"])

    click.echo(f"\nAccuracy: {result.metrics[Metrics.ACCURACY]:.4f}")


if __name__ == "__main__":
    main()
