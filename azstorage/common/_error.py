#-------------------------------------------------------------------------
# Copyright (c) Microsoft.  All rights reserved.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#   http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#--------------------------------------------------------------------------
from azure.common import (
    AzureHttpError,
    AzureException,
)

from ._constants import (
    _HEADER_ERROR_CODE,
)

_ERROR_STORAGE_MISSING_INFO = \
    'You need to provide an account name or explicit endpoints when creating a storage service.'
_ERROR_VALUE_NONE = '{0} should not be None.'
_ERROR_VALUE_NEGATIVE = '{0} should not be negative.'
_ERROR_VALUE_SHOULD_BE_BYTES = '{0} should be of type bytes.'
_ERROR_VALUE_SHOULD_BE_BYTES_OR_STREAM = \
    '{0} should be of type bytes or a readable file-like/io.IOBase stream object.'
_ERROR_VALUE_SHOULD_BE_SEEKABLE_STREAM = '{0} should be a seekable file-like/io.IOBase type stream object.'
_ERROR_VALUE_SHOULD_BE_STREAM = '{0} should be a file-like/io.IOBase type stream object with a read method.'
_ERROR_VALUE_OUT_OF_RANGE = '{0} should be between {1} and {2}, was {3}.'
_ERROR_STREAM_SHORTER_THAN_EXPECTED = 'The stream ended after {0} bytes but {1} bytes were expected.'
_ERROR_STREAM_NOT_REWINDABLE = 'The request body stream could not be rewound to position {0} for a retry.'
_ERROR_STREAM_NOT_SEEKABLE = 'The request body stream is not seekable, so it cannot be sent again for a retry.'
_ERROR_OPERATION_TIMED_OUT = \
    'The operation did not complete within the maximum execution time of {0} seconds (attempts: {1}).'
_ERROR_UNEXPECTED_STATUS = 'Unexpected status code {0}, expected one of {1}.'
_ERROR_OBJECT_INVALID = \
    '{0} does not define a complete interface. Value of {1} is either missing or invalid.'
_ERROR_ENCRYPTION_REQUIRED = 'Encryption required but no key was provided.'
_ERROR_UNSUPPORTED_METHOD_FOR_ENCRYPTION = \
    'The require_encryption flag is set, but encryption is not supported for this method.'
_ERROR_UNKNOWN_KEY_WRAP_ALGORITHM = 'Unknown key wrap algorithm.'


class AzureSigningError(AzureException):
    """
    Represents a fatal error when attempting to sign a request.
    In general, the cause of this exception is user error. For example, the
    given sas token is malformed.
    """
    pass


class AzureOperationTimeoutError(AzureException):
    """
    Raised when an operation exceeds its overall execution time budget,
    across all of its attempts. No further attempt is started once the
    budget is spent.
    """
    pass


class StreamRecoveryError(AzureException):
    """
    Raised when a request body stream cannot be rewound before a retry.
    Retransmitting would send different bytes, so the failure is fatal.
    """
    pass


def _http_error_handler(http_error):
    ''' Simple error handler for azure.'''
    message = str(http_error)
    error_code = None

    if _HEADER_ERROR_CODE in http_error.respheader:
        error_code = http_error.respheader[_HEADER_ERROR_CODE]
        message += ' ErrorCode: ' + error_code

    if http_error.respbody:
        message += '\n' + http_error.respbody.decode('utf-8-sig')

    ex = AzureHttpError(message, http_error.status)
    ex.error_code = error_code

    raise ex


def _wrap_exception(ex, desired_type):
    msg = ""
    if len(ex.args) > 0:
        msg = ex.args[0]
    return desired_type(msg)


def _validate_type_bytes(param_name, param):
    if not isinstance(param, bytes):
        raise TypeError(_ERROR_VALUE_SHOULD_BE_BYTES.format(param_name))


def _validate_not_none(param_name, param):
    if param is None:
        raise ValueError(_ERROR_VALUE_NONE.format(param_name))


def _validate_not_negative(param_name, param):
    if param is not None and param < 0:
        raise ValueError(_ERROR_VALUE_NEGATIVE.format(param_name))


def _validate_in_range(param_name, param, minimum, maximum):
    if param < minimum or param > maximum:
        raise ValueError(_ERROR_VALUE_OUT_OF_RANGE.format(param_name, minimum, maximum, param))


def _validate_key_encryption_key_wrap(kek):
    # Note that None is not callable and so will fail the second clause of each check.
    if not hasattr(kek, 'wrap_key') or not callable(kek.wrap_key):
        raise AttributeError(_ERROR_OBJECT_INVALID.format('key encryption key', 'wrap_key'))
    if not hasattr(kek, 'get_kid') or not callable(kek.get_kid):
        raise AttributeError(_ERROR_OBJECT_INVALID.format('key encryption key', 'get_kid'))
    if not hasattr(kek, 'get_key_wrap_algorithm') or not callable(kek.get_key_wrap_algorithm):
        raise AttributeError(_ERROR_OBJECT_INVALID.format('key encryption key', 'get_key_wrap_algorithm'))


def _validate_encryption_required(require_encryption, kek):
    if require_encryption and (kek is None):
        raise ValueError(_ERROR_ENCRYPTION_REQUIRED)


def _validate_encryption_unsupported(require_encryption, key_encryption_key):
    if require_encryption or (key_encryption_key is not None):
        raise ValueError(_ERROR_UNSUPPORTED_METHOD_FOR_ENCRYPTION)
