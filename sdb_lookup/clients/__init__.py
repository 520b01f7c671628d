"""
Catalogue and Resolver Clients

This module contains client interfaces for the external services the sdb
pipeline talks to. Each client handles the communication, response parsing,
rate limiting and retries for one service.

Available clients:
- Sesame: CDS name resolver (name -> position)
- SIMBAD: SIMBAD TAP service (position -> name, identifiers, basic info)
- VizieR: cone searches of VizieR catalogues, with epoch propagation
- IRSA: cone searches of IRSA Gator catalogues
- Local: box queries of catalogues mirrored in a local database
"""

# Import clients
from sdb_lookup.clients.sesame_client import SesameClient
from sdb_lookup.clients.simbad_client import SimbadClient
from sdb_lookup.clients.name_resolver import CdsNameResolver
from sdb_lookup.clients.vizier_client import VizierClient
from sdb_lookup.clients.irsa_client import IrsaGatorClient
from sdb_lookup.clients.local_catalog_client import (
    LocalCatalogueClient, MirroredTable, IRAS_FSC, IRAS_PSC, SPITZER_IRS_STARE
)


# Factory function to get the appropriate cone search client
def get_client(service_name, **kwargs):
    """
    Get a cone search client by service name

    Args:
        service_name: Name of the service ('vizier', 'irsa')
        **kwargs: Passed to the client constructor (timeout, max_retries, ...)

    Returns:
        Instance of the requested client

    Raises:
        ValueError: If service_name is not recognized
    """
    service_map = {
        'vizier': VizierClient,
        'irsa': IrsaGatorClient,
    }

    if service_name.lower() not in service_map:
        raise ValueError(f"Unknown service: {service_name}. Available services: {', '.join(service_map.keys())}")

    return service_map[service_name.lower()](**kwargs)


__all__ = [
    'SesameClient',
    'SimbadClient',
    'CdsNameResolver',
    'VizierClient',
    'IrsaGatorClient',
    'LocalCatalogueClient',
    'MirroredTable',
    'IRAS_FSC',
    'IRAS_PSC',
    'SPITZER_IRS_STARE',
    'get_client',
]
