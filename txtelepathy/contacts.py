"""
Contacts on a Telepathy connection.

A L{Contact} is built from the attributes returned by the Contacts interface
of the connection and holds a reference on its handle for as long as it
lives.
"""
from txtelepathy import constants
from txtelepathy.debug import debug, warning
from txtelepathy.handles import ReferencedHandles
from txtelepathy.pending import PendingOperation


ATTR_CONTACT_ID   = constants.CONN_INTERFACE + '/contact-id'
ATTR_ALIAS        = constants.CONN_INTERFACE_ALIASING + '/alias'
ATTR_AVATAR_TOKEN = constants.CONN_INTERFACE_AVATARS + '/token'
ATTR_PRESENCE     = constants.CONN_INTERFACE_SIMPLE_PRESENCE + '/presence'


class Contact (object):
    """
    @ivar connection: The L{connection.Connection} the contact belongs to
    @ivar handle: L{ReferencedHandles} holding the single contact handle
    @ivar id: The contact identifier, as normalized by the service
    """

    FeatureAlias          = 0
    FeatureAvatarToken    = 1
    FeatureSimplePresence = 2

    featureInterfaces = {
        FeatureAlias          : constants.CONN_INTERFACE_ALIASING,
        FeatureAvatarToken    : constants.CONN_INTERFACE_AVATARS,
        FeatureSimplePresence : constants.CONN_INTERFACE_SIMPLE_PRESENCE,
    }

    def __init__(self, connection, handle, requestedFeatures, attributes):
        self.connection         = connection
        self.handle             = handle
        self.id                 = attributes.get(ATTR_CONTACT_ID, '')
        self._requested         = frozenset(requestedFeatures)
        self._actual            = set()
        self._alias             = None
        self._avatarToken       = None
        self._presence          = None

        if ATTR_ALIAS in attributes:
            self._alias = attributes[ATTR_ALIAS]
            self._actual.add(Contact.FeatureAlias)

        if ATTR_AVATAR_TOKEN in attributes:
            self._avatarToken = attributes[ATTR_AVATAR_TOKEN]
            self._actual.add(Contact.FeatureAvatarToken)

        if ATTR_PRESENCE in attributes:
            self._presence = tuple(attributes[ATTR_PRESENCE])
            self._actual.add(Contact.FeatureSimplePresence)


    def __repr__(self):
        return '<Contact %d %r>' % (self.handle[0], self.id)


    def requestedFeatures(self):
        return self._requested


    def actualFeatures(self):
        return frozenset(self._actual)


    def _check(self, feature, name):
        if feature not in self._requested:
            warning('Contact.%s() used on %r for which the feature was not '
                    'requested', name, self)


    def alias(self):
        self._check(Contact.FeatureAlias, 'alias')
        return self._alias if self._alias is not None else self.id


    def avatarToken(self):
        self._check(Contact.FeatureAvatarToken, 'avatarToken')
        return self._avatarToken


    def presence(self):
        """
        @returns: (type, status, message) tuple or None if unknown
        """
        self._check(Contact.FeatureSimplePresence, 'presence')
        return self._presence



class PendingContactAttributes (PendingOperation):
    """
    Result of L{connection.Connection.getContactAttributes}

    @ivar handlesRequested: The handles passed in
    @ivar interfacesRequested: The interfaces passed in
    @ivar shouldReference: Whether the valid handles are referenced
    """

    def __init__(self, connection, handles, interfaces, reference):
        PendingOperation.__init__(self)
        self.connection          = connection
        self.handlesRequested    = list(handles)
        self.interfacesRequested = list(interfaces)
        self.shouldReference     = reference
        self._attributes         = dict()
        self._validHandles       = None
        self._invalidHandles     = list()
        self._inFlight           = False


    def attributes(self):
        """
        @returns: dict of handle => attribute dict for the valid handles
        """
        if not self.isFinished():
            warning('PendingContactAttributes.attributes() called before '
                    'finished')
        return self._attributes


    def validHandles(self):
        """
        @rtype: L{ReferencedHandles}
        """
        if not self.isFinished():
            warning('PendingContactAttributes.validHandles() called before '
                    'finished')
        elif not self.shouldReference:
            warning('PendingContactAttributes.validHandles() called but '
                    'weren\'t asked to reference handles')
        return self._validHandles


    def invalidHandles(self):
        return list(self._invalidHandles)


    def _track(self, d):
        self._inFlight = True
        self.connection.handleRequestStarted(constants.HANDLE_TYPE_CONTACT)
        d.addCallbacks(self._cbGotAttributes, self._ebFailed)


    def _landed(self):
        if self._inFlight:
            self._inFlight = False
            self.connection.handleRequestLanded(constants.HANDLE_TYPE_CONTACT)


    def _cbGotAttributes(self, attributes):
        debug('GetContactAttributes returned %d contacts', len(attributes))

        valid = list()

        for h in self.handlesRequested:
            if h in attributes:
                if h not in valid:
                    valid.append(h)
            else:
                self._invalidHandles.append(h)

        self._attributes = dict( (h, attributes[h]) for h in valid )

        if self.shouldReference:
            self._validHandles = ReferencedHandles(self.connection,
                                                   constants.HANDLE_TYPE_CONTACT,
                                                   valid)

        self._landed()
        self.setFinished()


    def _ebFailed(self, failure):
        self._landed()
        self.setFinishedWithFailure(failure)



class PendingContacts (PendingOperation):
    """
    Result of L{ContactManager.contactsForHandles}

    @ivar handles: The handles contacts were requested for
    @ivar features: The contact features requested
    """

    def __init__(self, manager, handles, features):
        PendingOperation.__init__(self)
        self.manager          = manager
        self.handles          = list(handles)
        self.features         = frozenset(features)
        self._contacts        = list()
        self._invalidHandles  = list()


    def contacts(self):
        if not self.isFinished():
            warning('PendingContacts.contacts() called before finished')
        return list(self._contacts)


    def invalidHandles(self):
        return list(self._invalidHandles)


    def _attributesFinished(self, op):
        if op.isError():
            self.setFinishedWithError(op.errorName, op.errorMessage)
            return

        refs = op.validHandles()

        for h in refs:
            handle = ReferencedHandles(self.manager.connection,
                                       constants.HANDLE_TYPE_CONTACT, [h])
            self._contacts.append( Contact(self.manager.connection, handle,
                                           self.features,
                                           op.attributes()[h]) )

        # Each contact now holds its own reference
        refs.release()

        self._invalidHandles = op.invalidHandles()

        self.setFinished()



class ContactManager (object):
    """
    Builds L{Contact} objects for a connection
    """

    def __init__(self, connection):
        self.connection = connection


    def supportedFeatures(self):
        """
        @returns: The contact features the connection can provide
        """
        available = set(self.connection.contactAttributeInterfaces())

        return frozenset( f for f, iface in Contact.featureInterfaces.items()
                          if iface in available )


    def contactsForHandles(self, handles, features=()):
        """
        @rtype: L{PendingContacts}
        """
        pending = PendingContacts(self, handles, features)

        if not self.connection.isValid():
            pending.setFinishedWithError(*self.connection.invalidationReason())
            return pending

        supported = self.supportedFeatures()

        interfaces = list()

        for f in sorted(pending.features):
            if f in supported:
                interfaces.append(Contact.featureInterfaces[f])
            else:
                debug('Contact feature %d not supported by the connection', f)

        op = self.connection.getContactAttributes(handles, interfaces, True)

        op.notifyOnFinished(pending._attributesFinished)

        return pending
