from setuptools import setup, find_packages


setup(
    name="pngfiles",
    version="0.1",
    packages=find_packages(),
    description="Embed, extract and remove arbitrary files inside PNG images via private ancillary chunks.",
    author="vercingetorx",
    python_requires=">=3.8",
    install_requires=[],
    entry_points={
        "console_scripts": [
            "pngfiles=pngfiles.cli:main",
        ]
    },
)
