class MapperError(Exception):
    """
    Base class for all hostpath mapper failures.
    """


class StartupError(MapperError):
    """
    The agent could not reach a state where mapping can begin.
    Always fatal.
    """


class ModeResolutionError(StartupError):
    pass


class ConfigDecodeError(ModeResolutionError):
    pass


class ListingError(MapperError):
    """
    Listing pods or namespaces failed. The current pass is abandoned,
    the next scheduled pass retries.
    """


class SymlinkError(MapperError):
    """
    A link or directory could not be created for a reason other than
    it already existing. Fatal to the process.
    """
