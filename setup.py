import os
import setuptools #type: ignore
from configparser import ConfigParser


class CleanCommand(setuptools.Command):
    """Custom clean command to tidy up the project root."""
    user_options:list = []

    def initialize_options(self):
        pass

    def finalize_options(self):
        pass

    def run(self):
        os.system('rm -vrf ./build ./dist ./*.pyc ./*.tgz ./*.egg-info')


here = os.path.abspath(os.path.dirname(__file__))
config = ConfigParser(delimiters=['='])
config.read(os.path.join(here, 'settings.ini'))
cfg = config['DEFAULT']
min_python = cfg['min_python']
py_versions = '3.8 3.9 3.10 3.11 3.12 3.13'.split()
statuses = ['1 - Planning', '2 - Pre-Alpha', '3 - Alpha', '4 - Beta',
            '5 - Production/Stable', '6 - Mature', '7 - Inactive']

cfg_keys = 'description keywords author version'.split()
setup_cfg = {o: cfg[o] for o in cfg_keys}

with open(os.path.join(here, cfg.get('requirements', 'requirements.txt'))) as f:
    requirements = [line.strip() for line in f if line.strip() and not line.startswith('#')]

with open(os.path.join(here, 'README.md')) as f:
    long_description = f.read()

setuptools.setup(
    name=cfg['lib_name'],
    packages=setuptools.find_packages(include=['mvnseq', 'mvnseq.*']),
    install_requires=requirements,
    extras_require={'test': cfg['test_requirements'].split()},
    python_requires='>=' + min_python,
    long_description=long_description,
    long_description_content_type='text/markdown',
    cmdclass={
        'clean': CleanCommand,
    },
    classifiers=['Development Status :: ' + statuses[int(cfg['status'])],
                 'Intended Audience :: ' + cfg['audience'].title(),
                 'Natural Language :: ' + cfg['language'].title()] +
                ['Programming Language :: Python :: ' + o for o in
                 py_versions[py_versions.index(min_python):]],
    **setup_cfg)
