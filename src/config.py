"""
Configuration handling for the customer purchase analytics pipeline.
"""
import os
import logging
import configparser
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()
# Load environment variables
POSTGRES_HOST = os.getenv("POSTGRES_HOST")
POSTGRES_PORT = os.getenv("POSTGRES_PORT")
POSTGRES_DB = os.getenv("POSTGRES_DB")
POSTGRES_USER = os.getenv("POSTGRES_USER")
POSTGRES_PASSWORD = os.getenv("POSTGRES_PASSWORD")

# Column names of the order-management export (one row per order)
DEFAULT_HEADER_COLUMNS = {
    'order_number': 'Número de Pedido',
    'status': 'Estado',
    'channel': 'Canal',
    'order_type': 'Tipo de Pedido',
    'payment_type': 'Tipo de pago o descuento',
    'customer_name': 'Cliente',
    'email': 'Correo electrónico del cliente',
    'phone': 'Celular del cliente',
    'city': 'Ciudad',
    'pharmacy': 'Farmacia',
    'order_date': 'Pedido Generado',
    'pos_user': 'Usuario POS',
}

# Column names of the point-of-sale export (one row per order line)
DEFAULT_LINE_COLUMNS = {
    'order_id': 'Pedido',
    'sku': 'Codigo',
    'description': 'Descripcion',
    'quantity': 'Cantidad',
    'line_total': 'Total',
    'identity': 'Identidad',
}


class ColumnMapping:
    """Maps the pipeline's field names to the header strings of one export."""

    def __init__(self, columns):
        self.columns = dict(columns)

    def __getitem__(self, field):
        return self.columns[field]

    def get(self, field, default=None):
        return self.columns.get(field, default)

    def require(self, df, fields):
        """Raise KeyError naming the first configured column missing from df."""
        for field in fields:
            column = self.columns.get(field)
            if column is None or column not in df.columns:
                raise KeyError(f"Column '{column}' for field '{field}' not found in input")


class SalesRepDirectory:
    """
    Static mapping from point-of-sale user to (sales rep name, zone).

    Keys are matched trimmed and case-insensitively.
    """

    def __init__(self, entries=None):
        self._entries = {}
        for pos_user, (name, zone) in (entries or {}).items():
            self._entries[pos_user.strip().lower()] = (name, zone)

    def lookup(self, pos_user):
        if not pos_user or not isinstance(pos_user, str):
            return None, None
        return self._entries.get(pos_user.strip().lower(), (None, None))

    def zones(self):
        return sorted({zone for _, zone in self._entries.values()})

    def reps_by_zone(self, zone=None):
        reps = [
            {'pos_user': pos_user, 'name': name, 'zone': rep_zone}
            for pos_user, (name, rep_zone) in self._entries.items()
            if zone is None or rep_zone == zone
        ]
        return sorted(reps, key=lambda rep: rep['name'])

    def __len__(self):
        return len(self._entries)


class Config:
    """Configuration manager for the customer purchase analytics pipeline."""

    def __init__(self, config_file='config.ini'):
        """
        Initialize configuration from config file.
        """
        self.config = configparser.ConfigParser(interpolation=None)

        # Set default values
        self._set_defaults()

        # Try to read from config file
        config_path = Path(config_file)
        if config_path.exists():
            self.config.read(config_path, encoding='utf-8')
            self._setup_logging()
        else:
            logging.getLogger(__name__).warning(
                f"Config file {config_file} not found. Using defaults."
            )

    def _set_defaults(self):
        """Set default configuration values."""
        self.config['DATABASE'] = {
            'type': 'postgresql',
            'name': POSTGRES_DB or '',
            'host': POSTGRES_HOST or '',
            'port': POSTGRES_PORT or '',
            'user': POSTGRES_USER or '',
            'password': POSTGRES_PASSWORD or ''
        }

        self.config['LOGGING'] = {
            'level': 'INFO',
            'file': 'logs/pipeline.log'
        }

        self.config['PATHS'] = {
            'input_dir': 'data/input',
            'output_dir': 'data/output',
            'headers_file': 'pedidos.xlsx',
            'lines_file': 'detalle_pos.xlsx'
        }

        self.config['PIPELINE'] = {
            'incremental': 'false',
            'quality_check': 'true',
            'delivered_status': 'Entregado',
            'delivery_sku': '20000025',
            'batch_size': '100',
            'batch_delay': '0.1'
        }

        self.config['HEADER_COLUMNS'] = DEFAULT_HEADER_COLUMNS
        self.config['LINE_COLUMNS'] = DEFAULT_LINE_COLUMNS
        self.config['SALES_REPS'] = {}

    def _setup_logging(self):
        """Configure logging based on settings."""
        log_config = self.config['LOGGING']
        log_level = getattr(logging, log_config.get('level', 'INFO'))
        log_file = log_config.get('file', 'logs/pipeline.log')

        # Create directory for log file if it doesn't exist
        log_dir = os.path.dirname(log_file)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir)

        # Configure logging
        logging.basicConfig(
            level=log_level,
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            handlers=[
                logging.FileHandler(log_file, encoding='utf-8'),
                logging.StreamHandler()
            ]
        )

    def get_database_config(self):
        """
        Get database configuration; missing keys come back as empty strings.
        """
        database = self.config['DATABASE']
        return {
            key: database.get(key, '')
            for key in ('type', 'name', 'host', 'port', 'user', 'password')
        }

    def _directory(self, key, default, filename=None):
        directory = self.config['PATHS'].get(key, default)
        os.makedirs(directory, exist_ok=True)
        return os.path.join(directory, filename) if filename else directory

    def get_input_path(self, filename=None):
        """Input directory, or a file inside it. The directory is created if needed."""
        return self._directory('input_dir', 'data/input', filename)

    def get_output_path(self, filename=None):
        """Output directory, or a file inside it. The directory is created if needed."""
        return self._directory('output_dir', 'data/output', filename)

    def get_source_files(self):
        """Paths of the order-header and order-line exports."""
        paths = self.config['PATHS']
        return (
            self.get_input_path(paths.get('headers_file')),
            self.get_input_path(paths.get('lines_file'))
        )

    def is_incremental(self):
        """
        Check if incremental loading is enabled.
        """
        return self.config['PIPELINE'].getboolean('incremental', False)

    def is_quality_check_enabled(self):
        """
        Check if data quality checks are enabled.

        """
        return self.config['PIPELINE'].getboolean('quality_check', True)

    def get_delivered_status(self):
        return self.config['PIPELINE'].get('delivered_status', 'Entregado')

    def get_delivery_sku(self):
        """SKU reserved for the delivery/shipping service line."""
        return self.config['PIPELINE'].get('delivery_sku', '20000025')

    def get_sync_settings(self):
        """
        Batch size and inter-batch delay (seconds) for store writes.
        """
        pipeline = self.config['PIPELINE']
        return {
            'batch_size': pipeline.getint('batch_size', 100),
            'batch_delay': pipeline.getfloat('batch_delay', 0.1)
        }

    def get_header_columns(self):
        return ColumnMapping(self.config['HEADER_COLUMNS'])

    def get_line_columns(self):
        return ColumnMapping(self.config['LINE_COLUMNS'])

    def get_sales_rep_directory(self):
        """
        Build the attribution directory from the SALES_REPS section.

        Each entry reads ``pos_user = Rep Name, Zone``.
        """
        entries = {}
        for pos_user, value in self.config['SALES_REPS'].items():
            name, _, zone = value.rpartition(',')
            if not name:
                name, zone = zone, ''
            entries[pos_user] = (name.strip(), zone.strip() or None)
        return SalesRepDirectory(entries)
