#!/usr/bin/env python3
"""
Network Info

Authenticates with BSN.cloud, lists the networks visible to the API
credentials, and selects the configured default network.

Requires BS_CLIENT_ID and BS_SECRET; BS_NETWORK is optional.
"""

import logging
import sys

from pypurple import PurpleClient, is_authentication_error, is_configuration_error
from pypurple.core.errors import PurpleError


def setup_logging():
    """Configure logging"""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def main() -> int:
    setup_logging()
    logger = logging.getLogger(__name__)

    try:
        client = PurpleClient()
    except PurpleError as e:
        logger.error(f"Cannot create client: {e}")
        return 2

    with client:
        try:
            token = client.authenticate()
            logger.info(f"Authenticated; token valid until {token.expires_at.isoformat()}")

            networks = client.get_networks()
            logger.info(f"{len(networks)} network(s) available:")
            for network in networks:
                locked = " (locked out)" if network.is_locked_out else ""
                logger.info(f"  [{network.id}] {network.name}{locked}")

            client.ensure_ready()
            if client.is_network_set():
                logger.info(f"Active network: {client.get_current_network().describe()}")
            else:
                logger.info("No default network configured (set BS_NETWORK to select one)")

        except PurpleError as e:
            if is_authentication_error(e):
                logger.error(f"Check BS_CLIENT_ID / BS_SECRET: {e}")
            elif is_configuration_error(e):
                logger.error(f"Configuration problem: {e}")
            else:
                logger.error(f"Request failed: {e}")
            return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
