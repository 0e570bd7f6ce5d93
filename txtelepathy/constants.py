"""
Telepathy interface names and enumerations used by the client proxies
"""

# Interfaces
CONN_INTERFACE                 = 'org.freedesktop.Telepathy.Connection'
CONN_INTERFACE_REQUESTS        = CONN_INTERFACE + '.Interface.Requests'
CONN_INTERFACE_CONTACTS        = CONN_INTERFACE + '.Interface.Contacts'
CONN_INTERFACE_SIMPLE_PRESENCE = CONN_INTERFACE + '.Interface.SimplePresence'
CONN_INTERFACE_ALIASING        = CONN_INTERFACE + '.Interface.Aliasing'
CONN_INTERFACE_AVATARS         = CONN_INTERFACE + '.Interface.Avatars'

CHANNEL_INTERFACE              = 'org.freedesktop.Telepathy.Channel'

PROPERTIES_INTERFACE           = 'org.freedesktop.DBus.Properties'

DBUS_SERVICE                   = 'org.freedesktop.DBus'
DBUS_PATH                      = '/org/freedesktop/DBus'
DBUS_INTERFACE                 = 'org.freedesktop.DBus'


# Channel request keys
CHANNEL_TYPE                   = CHANNEL_INTERFACE + '.ChannelType'
CHANNEL_TARGET_HANDLE_TYPE     = CHANNEL_INTERFACE + '.TargetHandleType'
CHANNEL_TARGET_HANDLE          = CHANNEL_INTERFACE + '.TargetHandle'


# Connection_Status
CONNECTION_STATUS_CONNECTED    = 0
CONNECTION_STATUS_CONNECTING   = 1
CONNECTION_STATUS_DISCONNECTED = 2

# Not a wire value. Reported until the first GetStatus reply arrives.
CONNECTION_STATUS_UNKNOWN      = 0xFFFFFFFF


# Connection_Status_Reason
CONNECTION_STATUS_REASON_NONE_SPECIFIED            = 0
CONNECTION_STATUS_REASON_REQUESTED                 = 1
CONNECTION_STATUS_REASON_NETWORK_ERROR             = 2
CONNECTION_STATUS_REASON_AUTHENTICATION_FAILED     = 3
CONNECTION_STATUS_REASON_ENCRYPTION_ERROR          = 4
CONNECTION_STATUS_REASON_NAME_IN_USE               = 5
CONNECTION_STATUS_REASON_CERT_NOT_PROVIDED         = 6
CONNECTION_STATUS_REASON_CERT_UNTRUSTED            = 7
CONNECTION_STATUS_REASON_CERT_EXPIRED              = 8
CONNECTION_STATUS_REASON_CERT_NOT_ACTIVATED        = 9
CONNECTION_STATUS_REASON_CERT_HOSTNAME_MISMATCH    = 10
CONNECTION_STATUS_REASON_CERT_FINGERPRINT_MISMATCH = 11
CONNECTION_STATUS_REASON_CERT_SELF_SIGNED          = 12
CONNECTION_STATUS_REASON_CERT_OTHER_ERROR          = 13


# Handle_Type
HANDLE_TYPE_NONE               = 0
HANDLE_TYPE_CONTACT            = 1
HANDLE_TYPE_ROOM               = 2
HANDLE_TYPE_LIST               = 3
HANDLE_TYPE_GROUP              = 4
