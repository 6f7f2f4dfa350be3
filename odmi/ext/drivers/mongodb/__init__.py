"""MongoDB driver for odmi.

The driver wraps a synchronous `pymongo.MongoClient`. Queries return a forward cursor that the model's `Result` consumes
lazily, and pymongo timeouts surface as `odmi.errors.OperationTimedOut`.

Example:
    ```python
    from odmi import use_driver
    from odmi.ext.drivers.mongodb import MongoDBDriver, MongoDBSettings

    settings = MongoDBSettings(
        host="localhost",
        port=27017,
        database_name="shelter",
        username="mongo_user",  # Optional
        password="secure_password",  # Optional
        authSource="admin",
        connection_options={"tlsAllowInvalidCertificates": True}  # Optional
    )

    with MongoDBDriver.connect(settings):
        pet = Pet.new()
        pet.name = "rex"
        pet.save()

        for pet in Pet.find().streaming():
            print(pet.name)
    ```
"""

from .driver import MongoDBDriver, MongoDBSettings


__all__ = ["MongoDBDriver", "MongoDBSettings"]
