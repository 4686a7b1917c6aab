class PlantItError(Exception):
    """Base class for errors raised by the service layer."""


class ImageSizeError(PlantItError):
    pass


class ImageProcessingError(PlantItError):
    pass


class IdentificationError(PlantItError):
    pass


class CareGenerationError(PlantItError):
    pass


class DeviceError(PlantItError):
    pass


class PersistenceError(PlantItError):
    pass
