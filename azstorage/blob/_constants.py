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

__author__ = 'Microsoft Corp. <ptvshelp@microsoft.com>'
__version__ = '0.1.0'

# x-ms-version for storage service.
X_MS_VERSION = '2018-03-28'

# Block blob limits
_MAX_BLOCK_NUMBER = 50000
_MIN_BLOCK_SIZE = 16 * 1024
_MAX_BLOCK_SIZE = 100 * 1024 * 1024
_DEFAULT_BLOCK_SIZE = 4 * 1024 * 1024
_DEFAULT_MAX_SINGLE_PUT_SIZE = 64 * 1024 * 1024

# Page blob limits
_PAGE_SIZE = 512
_MAX_PAGE_UPDATE_SIZE = 4 * 1024 * 1024
_DEFAULT_PAGE_WRITE_SIZE = 4 * 1024 * 1024

# internal configurations, should not be changed
_LARGE_BLOB_UPLOAD_MAX_READ_BUFFER_SIZE = 4 * 1024 * 1024
