# This file marks the services package for API business logic modules.
# Service modules isolate engine calls and storage access from transport concerns.
