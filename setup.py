from setuptools import setup, find_packages


setup(
    name="sfoedit",
    version="0.1",
    packages=find_packages(include=["sfoedit", "sfoedit.*"]),
    description="Read and edit PS4 param.sfo parameter files, standalone or inside PKG files.",
    author="vercingetorx",
    python_requires=">=3.9",
    entry_points={
        "console_scripts": [
            "sfoedit=sfoedit.cli:main",
        ]
    },
)
