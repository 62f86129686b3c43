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
from ..common._common_conversion import (
    _datetime_to_utc_string,
    _int_to_str,
    _to_str,
)


class Blob(object):
    '''
    Blob class.

    :ivar str name:
        Name of blob.
    :ivar BlobProperties properties:
        System properties for the blob.
    :ivar metadata:
        Name-value pairs associated with the blob as metadata.
    '''

    def __init__(self, name=None, props=None, metadata=None):
        self.name = name
        self.properties = props or BlobProperties()
        self.metadata = metadata


class ResourceProperties(object):
    '''
    The properties a write operation returns.

    :ivar str etag:
        The ETag of the blob after the write. Pass it to AccessCondition.if_match
        to make the next write conditional on no one else writing in between.
    :ivar datetime last_modified:
        A datetime object representing the last time the blob was modified.
    :ivar bool request_server_encrypted:
        Whether the service stored the written data encrypted.
    '''

    def __init__(self):
        self.etag = None
        self.last_modified = None
        self.request_server_encrypted = None


class PageBlobProperties(ResourceProperties):
    '''
    The properties a page blob write returns.

    :ivar int sequence_number:
        The sequence number of the page blob after the write.
    '''

    def __init__(self):
        super(PageBlobProperties, self).__init__()
        self.sequence_number = None


class BlobProperties(object):
    '''
    Blob Properties

    :ivar str blob_type:
        String indicating this blob's type.
    :ivar datetime last_modified:
        A datetime object representing the last time the blob was modified.
    :ivar str etag:
        The ETag contains a value that you can use to perform operations
        conditionally.
    :ivar int content_length:
        The length of the content returned.
    :ivar int page_blob_sequence_number:
        (For Page Blobs) Sequence number for page blob used for coordinating
        concurrent writes.
    :ivar ~azstorage.blob.models.ContentSettings content_settings:
        Stores all the content settings for the blob.
    '''

    def __init__(self):
        self.blob_type = None
        self.last_modified = None
        self.etag = None
        self.content_length = None
        self.page_blob_sequence_number = None
        self.server_encrypted = None
        self.content_settings = ContentSettings()


class ContentSettings(object):
    '''
    Used to store the content settings of a blob.

    :ivar str content_type:
        The content type specified for the blob. If no content type was
        specified, the default content type is application/octet-stream.
    :ivar str content_encoding:
        If the content_encoding has previously been set
        for the blob, that value is stored.
    :ivar str content_language:
        If the content_language has previously been set
        for the blob, that value is stored.
    :ivar str content_disposition:
        content_disposition conveys additional information about how to
        process the response payload, and also can be used to attach
        additional metadata. If content_disposition has previously been set
        for the blob, that value is stored.
    :ivar str cache_control:
        If the cache_control has previously been set for
        the blob, that value is stored.
    :ivar str content_md5:
        If the content_md5 has been set for the blob, this response
        header is stored so that the client can check for message content
        integrity.
    '''

    def __init__(
            self, content_type=None, content_encoding=None,
            content_language=None, content_disposition=None,
            cache_control=None, content_md5=None):
        self.content_type = content_type
        self.content_encoding = content_encoding
        self.content_language = content_language
        self.content_disposition = content_disposition
        self.cache_control = cache_control
        self.content_md5 = content_md5

    def to_headers(self):
        return {
            'x-ms-blob-cache-control': _to_str(self.cache_control),
            'x-ms-blob-content-type': _to_str(self.content_type),
            'x-ms-blob-content-disposition': _to_str(self.content_disposition),
            'x-ms-blob-content-md5': _to_str(self.content_md5),
            'x-ms-blob-content-encoding': _to_str(self.content_encoding),
            'x-ms-blob-content-language': _to_str(self.content_language),
        }


class AccessCondition(object):
    '''
    Conditions a write or read only proceeds under. Unset conditions are not
    sent.

    :ivar str if_match:
        An ETag value, or the wildcard character (*). The operation only
        proceeds if the blob's ETag matches.
    :ivar str if_none_match:
        An ETag value, or the wildcard character (*). The operation only
        proceeds if the blob's ETag does not match. With the wildcard, the
        operation fails if the blob exists.
    :ivar datetime if_modified_since:
        The operation only proceeds if the blob has been modified since this
        time. Naive datetimes are assumed to be UTC.
    :ivar datetime if_unmodified_since:
        The operation only proceeds if the blob has not been modified since
        this time. Naive datetimes are assumed to be UTC.
    :ivar str lease_id:
        Required if the blob has an active lease.
    :ivar int if_sequence_number_lte:
        (Page blobs) Proceed only if the sequence number is less than or equal
        to this value.
    :ivar int if_sequence_number_lt:
        (Page blobs) Proceed only if the sequence number is less than this value.
    :ivar int if_sequence_number_eq:
        (Page blobs) Proceed only if the sequence number equals this value.
    '''

    def __init__(self, if_match=None, if_none_match=None, if_modified_since=None,
                 if_unmodified_since=None, lease_id=None, if_sequence_number_lte=None,
                 if_sequence_number_lt=None, if_sequence_number_eq=None):
        self.if_match = if_match
        self.if_none_match = if_none_match
        self.if_modified_since = if_modified_since
        self.if_unmodified_since = if_unmodified_since
        self.lease_id = lease_id
        self.if_sequence_number_lte = if_sequence_number_lte
        self.if_sequence_number_lt = if_sequence_number_lt
        self.if_sequence_number_eq = if_sequence_number_eq

    def to_headers(self):
        return {
            'If-Match': _to_str(self.if_match),
            'If-None-Match': _to_str(self.if_none_match),
            'If-Modified-Since': _datetime_to_utc_string(self.if_modified_since),
            'If-Unmodified-Since': _datetime_to_utc_string(self.if_unmodified_since),
            'x-ms-lease-id': _to_str(self.lease_id),
            'x-ms-if-sequence-number-le': _int_to_str(self.if_sequence_number_lte),
            'x-ms-if-sequence-number-lt': _int_to_str(self.if_sequence_number_lt),
            'x-ms-if-sequence-number-eq': _int_to_str(self.if_sequence_number_eq),
        }


class BlobBlockState(object):
    '''Block blob block types.'''

    Committed = 'Committed'
    '''Committed blocks.'''

    Latest = 'Latest'
    '''Latest blocks.'''

    Uncommitted = 'Uncommitted'
    '''Uncommitted blocks.'''


class BlobBlock(object):
    '''
    BlockBlob Block class.

    :ivar str id:
        Block id.
    :ivar str state:
        Block state.
        Possible valuse: committed|uncommitted
    :ivar int size:
        Block size in bytes.
    '''

    def __init__(self, id=None, state=BlobBlockState.Latest):
        self.id = id
        self.state = state
        self.size = None

    def _set_size(self, size):
        self.size = size


class BlobBlockList(object):
    '''
    Blob Block List class.

    :ivar committed_blocks:
        List of committed blocks.
    :vartype committed_blocks: list(:class:`~azstorage.blob.models.BlobBlock`)
    :ivar uncommitted_blocks:
        List of uncommitted blocks.
    :vartype uncommitted_blocks: list(:class:`~azstorage.blob.models.BlobBlock`)
    '''

    def __init__(self):
        self.committed_blocks = list()
        self.uncommitted_blocks = list()


class BlockListType(object):
    '''
    Specifies whether to return the list of committed blocks, the list of uncommitted
    blocks, or both lists together.
    '''

    All = 'all'
    '''Both committed and uncommitted blocks.'''

    Committed = 'committed'
    '''Committed blocks.'''

    Uncommitted = 'uncommitted'
    '''Uncommitted blocks.'''


class PageRange(object):
    '''
    Page Range for page blob.

    :ivar int start:
        Start of page range in bytes.
    :ivar int end:
        End of page range in bytes.
    '''

    def __init__(self, start=None, end=None):
        self.start = start
        self.end = end


class SequenceNumberAction(object):
    '''Sequence number actions.'''

    Increment = 'increment'
    '''
    Increments the value of the sequence number by 1. If specifying this option,
    do not include the x-ms-blob-sequence-number header.
    '''

    Max = 'max'
    '''
    Sets the sequence number to be the higher of the value included with the
    request and the value currently stored for the blob.
    '''

    Update = 'update'
    '''Sets the sequence number to the value included with the request.'''


class _BlobTypes(object):
    '''Blob type options.'''

    BlockBlob = 'BlockBlob'
    '''Block blob type.'''

    PageBlob = 'PageBlob'
    '''Page blob type.'''


class _PageWriteOperation(object):
    '''The x-ms-page-write values.'''

    Update = 'update'
    '''Writes the request body into the range.'''

    Clear = 'clear'
    '''Deallocates the range. The request carries no body.'''
