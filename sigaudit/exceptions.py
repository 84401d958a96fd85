#!/usr/bin/env python3

# Copyright (C) 2024 The sigaudit developers
#
# This file is part of sigaudit. It is subject to the license terms in the
# LICENSE file found in the top-level directory of this distribution.
#
# No part of sigaudit including this file, may be copied, modified, propagated,
# or distributed except according to the terms contained in the LICENSE file.

"""Exception classes.

They are only meant to discriminate between Exceptions being raised
by sigaudit from those raised by other codebase.

Malformed signatures, unrecoverable keys, and failing verifiers
are not exceptional in this package:
they are reported as issues or failure values.
Exceptions are raised only when a documented precondition is violated
(e.g. malformed hex-string input, negative scalar, unknown curve name).

Users are usually better off just dealing with the regular
ValueError, TypeError, and RuntimeError
from which the sigaudit versions are derived.
"""


class SigAuditValueError(ValueError):
    pass


class SigAuditTypeError(TypeError):
    pass


class SigAuditRuntimeError(RuntimeError):
    pass
