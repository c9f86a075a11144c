# setup.py
from setuptools import find_packages, setup

setup(
    name="MinerNav",
    version="0.1.0",
    packages=find_packages(include=["world", "world.*", "nav", "nav.*", "engine", "engine.*"]),
    include_package_data=True,
    python_requires=">=3.8",
    install_requires=[
        "numpy>=1.21",
    ],
    extras_require={
        "test": ["pytest>=7"],
    },
)
