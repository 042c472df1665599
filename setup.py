from setuptools import setup, find_packages

setup(
    name="gridmaps",
    version="0.1.0",
    package_dir={"": "src"},
    description="Multi-level grid maps, traversability graphs and voxel ray traversal",
    license="MIT",
    packages=find_packages(where="src"),
    python_requires=">=3.10",
    install_requires=[
        "numpy",
        "scipy",
        "rich",
        "rich-click",
    ],
    extras_require={
        "plotting": ["matplotlib", "scikit-image"],
        "test": ["pytest", "click", "matplotlib", "scikit-image"],
    },
    entry_points={
        "console_scripts": [
            "gridmaps=gridmaps.cli:main",
        ],
    },
)
