"""Authenticated API transport.

:class:`GraphQLClient` sends GraphQL requests with the bearer token and app
ID supplied by :class:`~memberstack_cli.auth.AuthSession`. It is the only
consumer of the auth core outside the ``auth`` commands.

Example::

    from memberstack_cli.client import GraphQLClient

    with GraphQLClient(settings, session) as client:
        data = client.request("query { currentApp { id name } }")
"""

from memberstack_cli.client.graphql_client import GraphQLClient

__all__ = ["GraphQLClient"]
