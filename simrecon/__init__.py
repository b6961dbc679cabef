"""
Reconstruction of structured illumination microscopy (SIM) data: OTF modelling, band separation,
correlation based estimation of the illumination parameters, and Wiener filter or Richardson-Lucy
reconstruction in 2D and 3D
"""

__version__ = "0.1.0"
