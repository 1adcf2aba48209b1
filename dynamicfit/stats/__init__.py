"""CFA estimation, population covariance and data generation modules."""

from . import cfa as cfa
from . import covariance as covariance
from . import data_generation as data_generation
