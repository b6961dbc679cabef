from setuptools import setup, find_packages
from os import path
from simrecon import __version__

this_dir = path.abspath(path.dirname(__file__))
with open(path.join(this_dir, "README.md")) as f:
    long_description = f.read()

required_pkgs = ['numpy',
                 'scipy',
                 'psutil',
                 'tifffile',
                 'h5py',
                 'dask',
                 ]

# extras
extras = {'gpu': [# assuming 11.2 <= CUDA version < 12. Otherwise, manually install with
                  # conda install -c conda-forge cupy cudatoolkit=11.8
                  'cupy-cuda11x',
                  ],
          'tests': ['pytest']
          }

setup(
    name='simrecon',
    version=__version__,
    description="Parameter estimation and reconstruction for 2D and 3D structured illumination"
                " microscopy (SIM) data, using generalized Wiener filtering or Richardson-Lucy deconvolution.",
    long_description=long_description,
    packages=find_packages(include=['simrecon', 'simrecon.*']),
    python_requires='>=3.9',
    install_requires=required_pkgs,
    extras_require=extras)
