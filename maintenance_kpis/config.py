import os
from dataclasses import dataclass
from typing import Dict, Tuple


@dataclass(frozen=True)
class MachineDefinition:
    """A critical machine tracked by the dashboard.

    ``key`` must match the machine name used in AppSheet and in the usage
    sheet exactly (after trimming); ``label`` is what the charts show.
    """
    key: str
    label: str
    code: str
    icon: str
    color: str

    def to_dict(self) -> Dict[str, str]:
        return {
            'key': self.key,
            'label': self.label,
            'code': self.code,
            'icon': self.icon,
            'color': self.color,
        }


MACHINES: Tuple[MachineDefinition, ...] = (
    MachineDefinition('Estufa', 'Estufa', 'EST', '🔥', '#f97316'),
    MachineDefinition('Elaboradora de Croissant - PD - ML 02', 'Medialunera', 'PD-ML02', '🥐', '#f59e0b'),
    MachineDefinition('Trinchadoras de pan - PD - TR 01', 'Trinch. Mignon', 'PD-TR01', '✂️', '#3b82f6'),
    MachineDefinition('Trinchadoras de pan - PD - TR 02', 'Trinch. Chipa', 'PD-TR02', '✂️', '#06b6d4'),
    MachineDefinition('Guillotina - PS - GT 01', 'Guillotina 01', 'PS-GT01', '⚙️', '#8b5cf6'),
    MachineDefinition('Guillotina - PS - GT 02', 'Guillotina 02', 'PS-GT02', '⚙️', '#ec4899'),
)

# AppSheet does not guarantee the casing of column names, so every logical
# field is looked up under each known spelling in order.
FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    'machine': ('Maquina', 'maquina', 'MAQUINA'),
    'request_date': ('Fecha Pedido', 'FECHA PEDIDO', 'FechaPedido'),
    'repair_date': ('Fecha Reparacion', 'FECHA REPARACION', 'FechaReparacion'),
    'priority': ('Prioridad', 'PRIORIDAD', 'prioridad'),
}

# Columns requested from the OTs table
WORK_ORDER_FIELDS = ['Maquina', 'Prioridad', 'Fecha Pedido', 'Fecha Reparacion']


class Config:
    """Base configuration."""
    DEBUG = False
    TESTING = False

    APPSHEET_APP_ID = os.environ.get('APPSHEET_APP_ID', '5d2eaf80-a5bc-4397-b970-4603844ad79c')
    APPSHEET_ACCESS_KEY = os.environ.get('APPSHEET_ACCESS_KEY')
    APPSHEET_TABLE = os.environ.get('APPSHEET_TABLE', 'OTs')
    APPSHEET_BASE_URL = os.environ.get('APPSHEET_BASE_URL', 'https://api.appsheet.com/api/v2')

    SHEET_ID = os.environ.get('SHEET_ID', '1D2bD7aNyLNUNcRr3cHyQ4yrutFJ61DTeWA_rdnoJ2RY')
    USAGE_SHEET_NAME = os.environ.get('USAGE_SHEET_NAME', 'USO MAQUINA POR DIA')

    CACHE_TTL_SECONDS = int(os.environ.get('CACHE_TTL_SECONDS', '300'))
    REQUEST_TIMEOUT = int(os.environ.get('REQUEST_TIMEOUT', '30'))

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    LOG_FORMAT = os.environ.get('LOG_FORMAT', 'text')


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'DEBUG')


class TestingConfig(Config):
    """Testing configuration. Providers are always stubbed."""
    TESTING = True
    APPSHEET_ACCESS_KEY = 'test-access-key'
    CACHE_TTL_SECONDS = 300


class ProductionConfig(Config):
    """Production configuration."""
    LOG_FORMAT = os.environ.get('LOG_FORMAT', 'json')


config_by_name = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': DevelopmentConfig
}
