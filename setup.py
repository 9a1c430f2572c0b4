# type: ignore
from setuptools import find_packages, setup, Command

# Get VERSION constant from flaglocal.version - we can't simply import that module because
# flaglocal/__init__.py imports modules that require dependencies we may not have
# loaded yet. Based on https://packaging.python.org/guides/single-sourcing-package-version/
version_module_globals = {}
with open('./flaglocal/version.py') as f:
    exec(f.read(), version_module_globals)
flaglocal_version = version_module_globals['VERSION']

def parse_requirements(filename):
    """ load requirements from a pip requirements file """
    lineiter = (line.strip() for line in open(filename))
    return [line for line in lineiter if line and not line.startswith("#")]

install_reqs = parse_requirements('requirements.txt')
test_reqs = parse_requirements('test-requirements.txt')

# reqs is a list of requirement
# e.g. ['aiohttp>=3.8,<4']
reqs = [ir for ir in install_reqs]
testreqs = [ir for ir in test_reqs]


class PyTest(Command):
    user_options = []

    def initialize_options(self):
        pass

    def finalize_options(self):
        pass

    def run(self):
        import sys
        import subprocess
        errno = subprocess.call([sys.executable, '-m', 'pytest', 'flaglocal/testing'])
        raise SystemExit(errno)

setup(
    name='flaglocal-server-sdk',
    version=flaglocal_version,
    packages=find_packages(include=['flaglocal', 'flaglocal.*']),
    description='Local feature flag evaluation for Python servers',
    long_description='Evaluates feature flags locally from periodically refreshed flag definitions, '
                     'optionally coordinating the refresh between workers through a shared cache.',
    install_requires=reqs,
    python_requires='>=3.10',
    classifiers=[
        'Intended Audience :: Developers',
        'Operating System :: OS Independent',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Topic :: Software Development',
        'Topic :: Software Development :: Libraries',
    ],
    extras_require={
        "test": testreqs,
    },
    tests_require=testreqs,
    cmdclass={'test': PyTest},
)
