"""I/O package for the soil moisture simulation."""

from .csv_writer import CSVWriter, simulation_to_csv
from .gateway import PersistenceGateway, InMemoryGateway, JsonFileGateway
from .visualizer import Visualizer
from .reporter import Reporter

__all__ = [
    'CSVWriter',
    'simulation_to_csv',
    'PersistenceGateway',
    'InMemoryGateway',
    'JsonFileGateway',
    'Visualizer',
    'Reporter',
]
