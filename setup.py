"""
Setup script for rhythm-drill.

Rhythm Drill is an adaptive rhythm dictation engine:

1. Session engine - weighted item selection, answer evaluation, tempo
   adaptation and rewards behind injectable collaborators
2. Terminal drill - a Rich CLI running against local collaborators

The 'rhythm-drill' command is the entry point.
"""

from setuptools import find_packages, setup

setup(
    name="rhythm-drill",
    version="1.0.0",
    description="Adaptive rhythm dictation drill engine with a terminal front end",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    packages=find_packages(include=["rhythm_drill", "rhythm_drill.*"]),
    python_requires=">=3.10",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "rhythm-drill=rhythm_drill.delivery.cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Education",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
        "Topic :: Multimedia :: Sound/Audio",
    ],
    keywords="music rhythm ear-training spaced-repetition cli education",
)
