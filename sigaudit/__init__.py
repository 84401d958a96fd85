#!/usr/bin/env python3

# Copyright (C) 2024 The sigaudit developers
#
# This file is part of sigaudit. It is subject to the license terms in the
# LICENSE file found in the top-level directory of this distribution.
#
# No part of sigaudit including this file, may be copied, modified, propagated,
# or distributed except according to the terms contained in the LICENSE file.

"__init__ module for the sigaudit package."

name = "sigaudit"
__version__ = "2024.10.1"
__author__ = "The sigaudit developers"
__author_email__ = "devs@sigaudit.org"
__copyright__ = "Copyright (C) 2024 The sigaudit developers"
__license__ = "MIT License"
