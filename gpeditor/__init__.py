# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""GPEditor - Windows Group Policy inspection and editing"""

import logging

__version__ = "1.0.0"

# Library code stays silent until the CLI configures handlers
logging.getLogger("gpedit").addHandler(logging.NullHandler())
