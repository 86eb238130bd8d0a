"""Exception types raised by pktlog."""


class PacketLogError(Exception):
    """Base class for all packet logging failures."""


class AddressFamilyMismatch(PacketLogError):
    """Endpoint address families differ or cannot be determined."""


class AddressConversionFailure(PacketLogError):
    """An address or port does not parse in the expected form."""


class ContainerFormatError(PacketLogError):
    """The capture file could not be prepared for appending."""


class FrameConstructionError(PacketLogError):
    """A protocol layer could not be built."""


class DispatchError(PacketLogError):
    """A frame was not fully written to file or sent on the wire."""


class ResolutionTimeout(PacketLogError):
    """No matching ARP reply was seen within the allowed attempts."""


class UnsupportedTargetFamily(PacketLogError):
    """Mirror resolution was requested for a non-IPv4 target."""
