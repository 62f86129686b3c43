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

_ERROR_PAGE_BLOB_SIZE_ALIGNMENT = \
    'Invalid page blob size: {0}. The size must be aligned to a 512-byte boundary.'
_ERROR_PAGE_BLOB_START_ALIGNMENT = 'start_range must align with 512 page size'
_ERROR_PAGE_BLOB_END_ALIGNMENT = 'end_range must align with 512 page size'
_ERROR_PAGE_RANGE_EMPTY = 'A page range must cover at least one page.'
_ERROR_PAGE_UPDATE_TOO_LARGE = 'A single page update may write at most {0} bytes, was {1}.'
_ERROR_PAGE_DATA_LENGTH = 'The page data holds {0} bytes but the range covers {1} bytes.'
_ERROR_PAGE_WRITE_SIZE = 'MAX_PAGE_SIZE must be a multiple of 512, was {0}.'
_ERROR_PAGE_WRITE_NOT_ALIGNED = \
    'Page blob writes must be a multiple of 512 bytes, {0} bytes are pending.'
_ERROR_NOT_PAGE_BLOB = 'The blob {0} is a {1}, not a page blob.'
_ERROR_BLOCK_COUNT_EXCEEDED = \
    'Uploading {0} bytes in blocks of {1} bytes needs {2} blocks, more than the {3} allowed. ' \
    'Increase MAX_BLOCK_SIZE or leave it at its default.'
_ERROR_BLOB_TOO_LARGE = 'A block blob may hold at most {0} bytes, {1} bytes were given.'
_ERROR_BLOCK_ID_REQUIRED = 'All blocks in block list need to have valid block ids.'
_ERROR_BLOCK_ID_LENGTHS = 'All block ids of a blob must have the same length.'
_ERROR_BLOB_STREAM_CLOSED = 'I/O operation on a closed blob stream.'
