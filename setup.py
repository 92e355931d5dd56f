#!/usr/bin/env python3
"""
Setup script for the Engagement Monitor.
"""

import os
import sys
from setuptools import setup, find_packages
from setuptools.command.install import install
from setuptools.command.develop import develop

MIN_PYTHON = (3, 9)
RUNTIME_DIRECTORIES = ("data/configs", "data/calibration", "logs")


def read_requirements(filename):
    """Read pinned requirements, ignoring comments and blank lines."""
    requirements = []
    with open(filename, 'r') as f:
        for line in f:
            line = line.split('#', 1)[0].strip()
            if line:
                requirements.append(line)
    return requirements


def python_version_ok():
    """Report the interpreter version and whether it is supported."""
    version = ".".join(str(part) for part in sys.version_info[:3])
    if sys.version_info[:2] < MIN_PYTHON:
        print(f"✗ Python {version} found, {MIN_PYTHON[0]}.{MIN_PYTHON[1]}+ required")
        return False
    print(f"✓ Python {version}")
    return True


def create_runtime_directories():
    """Create the directories used for configuration, calibration and logs."""
    for directory in RUNTIME_DIRECTORIES:
        os.makedirs(directory, exist_ok=True)
        print(f"✓ Directory ready: {directory}")


def post_install(mode):
    create_runtime_directories()
    print("\n" + "=" * 60)
    print(f"Engagement Monitor {mode} completed")
    print("=" * 60)
    print("\nReplay a recording:")
    print("  engagement-monitor replay recording.jsonl --calibrate 30 --stats")
    print("\nRun the test suite:")
    print("  pytest tests/")


class CustomInstall(install):
    """Install with a version check and runtime directories."""

    def run(self):
        if not python_version_ok():
            sys.exit(1)
        install.run(self)
        post_install("installation")


class CustomDevelop(develop):
    """Editable install with a version check and runtime directories."""

    def run(self):
        if not python_version_ok():
            sys.exit(1)
        develop.run(self)
        post_install("development installation")


def read_readme():
    if os.path.exists("README.md"):
        with open("README.md", "r", encoding="utf-8") as f:
            return f.read()
    return "Streaming attention, expression and engagement analysis from facial landmarks"


setup(
    name="engagement-monitor",
    version="1.0.0",
    author="Engagement Monitor Team",
    description="Streaming attention, expression and engagement analysis from facial landmarks",
    long_description=read_readme(),
    long_description_content_type="text/markdown",
    packages=find_packages(include=["engagement_monitor", "engagement_monitor.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Education",
        "Intended Audience :: Developers",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3 :: Only",
        "Topic :: Scientific/Engineering :: Artificial Intelligence",
        "Topic :: Scientific/Engineering :: Image Recognition",
    ],
    python_requires=">={}.{}".format(*MIN_PYTHON),
    install_requires=read_requirements("requirements.txt"),
    extras_require={"dev": ["pytest>=7.4.2"]},
    entry_points={"console_scripts": ["engagement-monitor=engagement_monitor.cli:main"]},
    cmdclass={"install": CustomInstall, "develop": CustomDevelop},
    keywords=[
        "engagement",
        "eye-aspect-ratio",
        "facial-expression",
        "face-landmarks",
        "blendshapes",
        "calibration",
    ],
)
