"""KeyKeeper Client Meta information.
   KeyKeeper Client ingests secrets from environment files and controls
   when vault secrets may be disclosed.
"""
__title__ = 'keykeeper_client'
__description__ = (
   'KeyKeeper Client ingests secrets from environment files '
   'and controls when vault secrets may be disclosed.'
)
__version__ = '0.3.0'
__copyright__ = 'Copyright (c) 2024 KeyKeeper Contributors'
__author__ = 'KeyKeeper Contributors'
__author_email__ = 'dev@keykeeper.dev'
__license__ = 'MIT'
__url__ = 'https://github.com/keykeeper/keykeeper-client'
