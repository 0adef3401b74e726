from setuptools import setup

setup(
    name="dissect.ext2dump",
    version="1.0.0",
    packages=["dissect.ext2dump", "dissect.ext2dump.tools"],
    install_requires=[
        "dissect.cstruct>=3.0.dev,<4.0.dev",
        "dissect.util>=3.0.dev,<4.0.dev",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "ext2dump=dissect.ext2dump.tools.dump:main",
        ],
    },
)
