import io
import re

from setuptools import find_packages, setup

__version__ = re.search(
    r'__version__\s*=\s*[\'"]([^\'"]*)[\'"]',
    io.open("src/pipecascade/version.py", encoding="utf_8_sig").read(),
).group(1)


setup(
    name="pipecascade",
    version=__version__,
    description="pipecascade decomposes data-processing pipelines into dependent units of work and schedules pipelines sharing resources.",
    long_description="""pipecascade decomposes data-processing pipelines into dependent units of work and schedules pipelines sharing resources.""",
    author="",
    author_email="",
    package_dir={"": "src"},
    packages=find_packages("src"),
    zip_safe=False,
    include_package_data=True,
    python_requires=">=3.10",
    install_requires=[
        "randomname",
        "networkx",
        "pydantic>=2",
        "typing_extensions",
    ],
    extras_require={
        "viz": ["graphviz", "pyvis"],
        "test": ["pytest"],
    },
)
