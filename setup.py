"""kerasdl — pip-installable package."""

from setuptools import setup, find_packages

setup(
    name="kerasdl",
    version="0.1.0",
    description="Keras-style Sequential modeling API on top of PyTorch",
    author="Luca Gandolfi",
    packages=find_packages(exclude=("tests", "tests.*", "examples")),
    python_requires=">=3.10",
    install_requires=[
        "numpy>=1.24.0",
        "torch>=2.2.0",
        "h5py>=3.9.0",
        "pyyaml>=6.0",
        "tqdm>=4.65.0",
        "click>=8.1.0",
    ],
    extras_require={
        "dev": ["pytest>=7.4.0"],
    },
)
