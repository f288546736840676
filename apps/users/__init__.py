"""Users app package.

Holds the marketplace account model with its guest, host and admin roles.
Use ``apps.users.models.CustomUser`` as the AUTH_USER_MODEL throughout the
project; authentication itself is delegated to JWTs issued elsewhere.
"""
