from setuptools import find_packages, setup

setup(
    name="pathwatch",
    version="0.1.0",
    description="Watch paths read from stdin and report their changes on stdout",
    author="Araray Velho",
    packages=find_packages(exclude=["tests", "tests.*", "examples"]),
    python_requires=">=3.8",
    install_requires=[
        "click",
        "toml",
        "pyyaml",
        "psutil",
        "inotify_simple; sys_platform == 'linux'",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "pathwatch=pathwatch.cli:main"
        ]
    },
)
