"""
Setup file.
"""

from setuptools import find_packages, setup

KEYWORDS = "subprocess spawn stream asyncio process"


if __name__ == "__main__":
    setup(
        name="spawn-stream",
        version="1.0.0",
        description="Spawn child processes as cancellable, shareable asyncio output streams.",
        keywords=KEYWORDS,
        python_requires=">=3.10",
        package_dir={"": "src"},
        packages=find_packages(where="src"),
        install_requires=["psutil"],
        extras_require={"test": ["pytest"]},
        include_package_data=True)
