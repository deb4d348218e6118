import os.path

from setuptools import find_packages, setup

try:
    # Import all script providers so that ENTRYPOINTS gets populated.
    from mobilelib.scripts import config, job, scale, script, service, table  # noqa: F401
    from mobilelib.scripts.utils import ENTRYPOINTS
except ImportError:
    # Avoid chicken-and-egg dependency requirements during initial installation.
    # This means you need to re-run setup in order to gain script entrypoints.
    ENTRYPOINTS = []


README = os.path.join(os.path.abspath(os.path.dirname(__file__)), "README.rst")


setup(name="mobilectl",
      version="0.1.0",
      description="Command-line management of hosted mobile services and their SQL resources.",
      long_description=open(README).read(),
      long_description_content_type="text/x-rst",
      platforms=["Any"],
      python_requires=">=3.6",
      install_requires=["docopt", "jinja2", "requests"],
      packages=find_packages(exclude=["tests"]),
      package_data={"mobilelib.tasks": ["templates/*.j2"]},
      entry_points={"console_scripts": ENTRYPOINTS})
