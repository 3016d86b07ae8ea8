"""IMU integration and filtering, preintegration, nearest-neighbour search and point-cloud images."""

__version__ = "0.1.0"