from setuptools import setup

setup(
    name="replaydat",
    version="0.1.0",
    description="Transcoder between binary replay dats and their text form",
    python_requires=">=3.8",
    install_requires=[
        "numpy",
    ],
    extras_require={
        "test": ["pytest"],
    },
    zip_safe=False,
    packages=["replaydat"],
)
