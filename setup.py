"""
Setup configuration for BP Tracker.

This file tells pip how to install the package and creates the 'bp' command.

To install for development (editable mode):
    pip install -e ".[test]"

This creates the 'bp' command that you can use from anywhere.
"""

from setuptools import setup, find_packages

setup(
    name="bp-tracker",
    version="0.1.0",
    description="Blood pressure tracking with crisis alerts, reminders and time-limited share links",
    author="Your Name",
    python_requires=">=3.10",

    # find_packages() picks up bp_tracker and web
    packages=find_packages(exclude=["tests", "tests.*"]),

    install_requires=[
        "click>=8.0.0",
        "tabulate>=0.9.0",
        "flask>=2.3.0",
        "PyJWT>=2.8.0",
    ],

    extras_require={
        "test": [
            "pytest>=7.0.0",
        ],
    },

    # This creates the 'bp' command
    # It says: when someone types 'bp', run the 'main' function from bp_tracker.cli
    entry_points={
        "console_scripts": [
            "bp=bp_tracker.cli:main",
        ],
    },
)
