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
import copy
import logging
from io import (
    SEEK_END,
    SEEK_SET,
    BytesIO,
)

from ..common._common_conversion import (
    _int_to_str,
    _to_str,
)
from ..common._constants import (
    DEFAULT_PROTOCOL,
    SERVICE_HOST_BASE,
    _HEADER_CONTENT_MD5,
)
from ..common._error import (
    _ERROR_VALUE_NEGATIVE,
    _validate_encryption_required,
    _validate_encryption_unsupported,
    _validate_in_range,
    _validate_not_none,
    _validate_type_bytes,
)
from ..common._http import (
    HTTPRequest,
    _StorageRequest,
)
from ..common._serialization import (
    _add_metadata_headers,
    _get_data_bytes_or_stream_only,
)
from ..common._streams import (
    _checkpoint,
    _get_content_md5,
    _rewind,
)
from ..common.models import OperationContext
from ._constants import (
    _DEFAULT_PAGE_WRITE_SIZE,
    _MAX_PAGE_UPDATE_SIZE,
    _PAGE_SIZE,
)
from ._deserialization import (
    _convert_xml_to_page_ranges,
    _parse_base_properties,
    _parse_page_properties,
)
from ._encryption import (
    _generate_blob_encryption_data,
    _get_blob_encryptor_and_padder,
)
from ._error import (
    _ERROR_NOT_PAGE_BLOB,
    _ERROR_PAGE_BLOB_SIZE_ALIGNMENT,
    _ERROR_PAGE_BLOB_START_ALIGNMENT,
    _ERROR_PAGE_DATA_LENGTH,
    _ERROR_PAGE_RANGE_EMPTY,
    _ERROR_PAGE_UPDATE_TOO_LARGE,
    _ERROR_PAGE_WRITE_SIZE,
)
from ._serialization import (
    _get_path,
    _validate_and_format_range_headers,
)
from ._upload_chunking import (
    _PageBlobChunkUploader,
    _SubStream,
)
from .baseblobservice import BaseBlobService
from .blobstream import BlobOutputStream
from .models import (
    AccessCondition,
    _BlobTypes,
    _PageWriteOperation,
)

logger = logging.getLogger(__name__)


class PageBlobService(BaseBlobService):
    '''
    Page blobs are a collection of 512-byte pages optimized for random read and
    write operations. To create a page blob, you initialize the page blob and
    specify the maximum size the page blob will grow. To add or update the
    contents of a page blob, you write a page or pages by specifying an offset
    and a range that align to 512-byte page boundaries. A write to a page blob
    can overwrite just one page, some pages, or up to 4 MB of the page blob.
    Writes to page blobs happen in-place and are immediately committed to the
    blob. The maximum size for a page blob is 8 TB.
    '''

    def __init__(self, account_name=None, sas_token=None, protocol=DEFAULT_PROTOCOL,
                 endpoint_suffix=SERVICE_HOST_BASE, primary_endpoint=None, secondary_endpoint=None,
                 request_session=None):
        '''
        :param str account_name:
            The storage account name. This is used to construct the storage
            endpoints. It is required unless explicit endpoints are given.
        :param str sas_token:
             A shared access signature token to use to authenticate requests.
             If not specified, anonymous access will be used.
        :param str protocol:
            The protocol to use for requests. Defaults to https.
        :param str endpoint_suffix:
            The host base component of the url, minus the account name. Defaults
            to Azure (core.windows.net). Override this to use the China cloud
            (core.chinacloudapi.cn).
        :param str primary_endpoint:
            The host to send requests to, instead of the one derived from the
            account name.
        :param str secondary_endpoint:
            The host to send reads to when reading from secondary.
        :param requests.Session request_session:
            The session object to use for http requests.
        '''
        self.blob_type = _BlobTypes.PageBlob
        super(PageBlobService, self).__init__(
            account_name, sas_token, protocol, endpoint_suffix, primary_endpoint,
            secondary_endpoint, request_session)

        self._max_page_size = _DEFAULT_PAGE_WRITE_SIZE

    @property
    def MAX_PAGE_SIZE(self):
        '''
        The number of bytes sent per page write by the create_blob_from_* and
        open_write_* methods. A multiple of 512 between 512 bytes and 4 MB.
        '''
        return self._max_page_size

    @MAX_PAGE_SIZE.setter
    def MAX_PAGE_SIZE(self, value):
        _validate_in_range('MAX_PAGE_SIZE', value, _PAGE_SIZE, _MAX_PAGE_UPDATE_SIZE)
        if value % _PAGE_SIZE != 0:
            raise ValueError(_ERROR_PAGE_WRITE_SIZE.format(value))
        self._max_page_size = value

    def create_blob(
            self, container_name, blob_name, content_length, content_settings=None,
            sequence_number=None, metadata=None, access_condition=None, timeout=None,
            operation_context=None):
        '''
        Creates a new Page Blob.

        See create_blob_from_* for high level functions that handle the
        creation and upload of large blobs with automatic chunking and
        progress notifications.

        :param str container_name:
            Name of existing container.
        :param str blob_name:
            Name of blob to create or update.
        :param int content_length:
            Required. This header specifies the maximum size
            for the page blob, up to 1 TB. The page blob size must be aligned
            to a 512-byte boundary.
        :param ~azstorage.blob.models.ContentSettings content_settings:
            ContentSettings object used to set properties on the blob.
        :param int sequence_number:
            The sequence number is a user-controlled value that you can use to
            track requests. The value of the sequence number must be between 0
            and 2^63 - 1.The default value is 0.
        :param metadata:
            Name-value pairs associated with the blob as metadata.
        :type metadata: dict(str, str)
        :param ~azstorage.blob.models.AccessCondition access_condition:
            Conditions the request only succeeds under.
        :param int timeout:
            The timeout parameter is expressed in seconds.
        :param ~azstorage.common.models.OperationContext operation_context:
            Tracks the attempts of the request.
        :return: ETag and last modified properties for the new Page Blob
        :rtype: :class:`~azstorage.blob.models.ResourceProperties`
        '''
        _validate_encryption_unsupported(self.require_encryption, self.key_encryption_key)

        return self._create_blob(
            container_name,
            blob_name,
            content_length,
            content_settings=content_settings,
            sequence_number=sequence_number,
            metadata=metadata,
            access_condition=access_condition,
            timeout=timeout,
            operation_context=operation_context,
        )

    def upload_pages(
            self, container_name, blob_name, page, offset, length=None, validate_content=False,
            access_condition=None, timeout=None, operation_context=None):
        '''
        Writes a range of pages to a page blob.

        :param str container_name:
            Name of existing container.
        :param str blob_name:
            Name of existing blob.
        :param page:
            Content of the page, as bytes or a seekable stream positioned at
            the first byte to write.
        :param int offset:
            Start of the range to write to. Must be a multiple of 512.
        :param int length:
            The number of bytes to write, a multiple of 512 of at most 4 MB.
            Defaults to the bytes remaining in page from its current position.
        :param bool validate_content:
            If true, calculates an MD5 hash of the page content. The storage
            service checks the hash of the content that has arrived
            with the hash that was sent. This is primarily valuable for detecting
            bitflips on the wire if using http instead of https as https (the default)
            will already validate. Note that this MD5 hash is not stored with the
            blob.
        :param ~azstorage.blob.models.AccessCondition access_condition:
            Conditions the write only succeeds under, including the
            sequence number conditions.
        :param int timeout:
            The timeout parameter is expressed in seconds.
        :param ~azstorage.common.models.OperationContext operation_context:
            Tracks the attempts of the request.
        :return: ETag, last modified and sequence number of the Page Blob
        :rtype: :class:`~azstorage.blob.models.PageBlobProperties`
        '''
        _validate_encryption_unsupported(self.require_encryption, self.key_encryption_key)
        _validate_not_none('page', page)
        if length is None:
            length = _get_remaining_length(_get_data_bytes_or_stream_only('page', page))

        return self._update_page(
            container_name,
            blob_name,
            page,
            offset,
            length,
            validate_content=validate_content,
            access_condition=access_condition,
            timeout=timeout,
            operation_context=operation_context,
        )

    def clear_pages(
            self, container_name, blob_name, offset, length, access_condition=None,
            timeout=None, operation_context=None):
        '''
        Clears a range of pages, so they read as zeros and no longer count
        towards the billed size of the blob.

        :param str container_name:
            Name of existing container.
        :param str blob_name:
            Name of existing blob.
        :param int offset:
            Start of the range to clear. Must be a multiple of 512.
        :param int length:
            The number of bytes to clear. Must be a multiple of 512.
        :param ~azstorage.blob.models.AccessCondition access_condition:
            Conditions the request only succeeds under.
        :param int timeout:
            The timeout parameter is expressed in seconds.
        :param ~azstorage.common.models.OperationContext operation_context:
            Tracks the attempts of the request.
        :return: ETag, last modified and sequence number of the Page Blob
        :rtype: :class:`~azstorage.blob.models.PageBlobProperties`
        '''
        _validate_encryption_unsupported(self.require_encryption, self.key_encryption_key)

        return self._put_pages(
            _PageWriteOperation.Clear,
            container_name,
            blob_name,
            None,
            offset,
            length,
            access_condition=access_condition,
            timeout=timeout,
            operation_context=operation_context,
        )

    def resize_blob(
            self, container_name, blob_name, content_length, access_condition=None,
            timeout=None, operation_context=None):
        '''
        Resizes a page blob to the specified size. If the specified value is less
        than the current size of the blob, then all pages above the specified value
        are cleared.

        :param str container_name:
            Name of existing container.
        :param str blob_name:
            Name of existing blob.
        :param int content_length:
            Size to resize blob to. Must be a multiple of 512.
        :param ~azstorage.blob.models.AccessCondition access_condition:
            Conditions the request only succeeds under.
        :param int timeout:
            The timeout parameter is expressed in seconds.
        :param ~azstorage.common.models.OperationContext operation_context:
            Tracks the attempts of the request.
        :return: ETag, last modified and sequence number of the Page Blob
        :rtype: :class:`~azstorage.blob.models.PageBlobProperties`
        '''
        _validate_not_none('container_name', container_name)
        _validate_not_none('blob_name', blob_name)
        _validate_not_none('content_length', content_length)
        _validate_page_blob_size(content_length)
        request = HTTPRequest()
        request.method = 'PUT'
        request.host_locations = self._get_host_locations()
        request.path = _get_path(container_name, blob_name)
        request.query = {
            'comp': 'properties',
            'timeout': _int_to_str(timeout),
        }
        request.headers = {'x-ms-blob-content-length': _to_str(content_length)}
        if access_condition is not None:
            request.headers.update(access_condition.to_headers())

        return self._perform_request(request, _parse_page_properties, operation_context=operation_context)

    def set_sequence_number(
            self, container_name, blob_name, sequence_number_action, sequence_number=None,
            access_condition=None, timeout=None, operation_context=None):

        '''
        Sets the blob sequence number.

        :param str container_name:
            Name of existing container.
        :param str blob_name:
            Name of existing blob.
        :param str sequence_number_action:
            This property indicates how the service should modify the blob's sequence
            number. See :class:`~azstorage.blob.models.SequenceNumberAction` for more information.
        :param str sequence_number:
            This property sets the blob's sequence number. The sequence number is a
            user-controlled property that you can use to track requests and manage
            concurrency issues.
        :param ~azstorage.blob.models.AccessCondition access_condition:
            Conditions the request only succeeds under.
        :param int timeout:
            The timeout parameter is expressed in seconds.
        :param ~azstorage.common.models.OperationContext operation_context:
            Tracks the attempts of the request.
        :return: ETag, last modified and sequence number of the Page Blob
        :rtype: :class:`~azstorage.blob.models.PageBlobProperties`
        '''
        _validate_not_none('container_name', container_name)
        _validate_not_none('blob_name', blob_name)
        _validate_not_none('sequence_number_action', sequence_number_action)
        request = HTTPRequest()
        request.method = 'PUT'
        request.host_locations = self._get_host_locations()
        request.path = _get_path(container_name, blob_name)
        request.query = {
            'comp': 'properties',
            'timeout': _int_to_str(timeout),
        }
        request.headers = {
            'x-ms-blob-sequence-number': _to_str(sequence_number),
            'x-ms-sequence-number-action': _to_str(sequence_number_action),
        }
        if access_condition is not None:
            request.headers.update(access_condition.to_headers())

        return self._perform_request(request, _parse_page_properties, operation_context=operation_context)

    def get_page_ranges(
            self, container_name, blob_name, offset=None, length=None, snapshot=None,
            lease_id=None, timeout=None, operation_context=None):
        '''
        Returns the list of valid page ranges for a Page Blob or snapshot
        of a page blob.

        :param str container_name:
            Name of existing container.
        :param str blob_name:
            Name of existing blob.
        :param int offset:
            Start of the range to list pages from. Must be a multiple of 512.
            Lists from the start of the blob if None.
        :param int length:
            The number of bytes to list pages in. Must be a multiple of 512.
            Lists to the end of the blob if None.
        :param str snapshot:
            The snapshot parameter is an opaque DateTime value that,
            when present, specifies the blob snapshot to retrieve information
            from.
        :param str lease_id:
            Required if the blob has an active lease.
        :param int timeout:
            The timeout parameter is expressed in seconds.
        :param ~azstorage.common.models.OperationContext operation_context:
            Tracks the attempts of the request.
        :return: A list of valid Page Ranges for the Page Blob.
        :rtype: list(:class:`~azstorage.blob.models.PageRange`)
        '''
        _validate_not_none('container_name', container_name)
        _validate_not_none('blob_name', blob_name)
        request = HTTPRequest()
        request.method = 'GET'
        request.host_locations = self._get_host_locations(secondary=True)
        request.path = _get_path(container_name, blob_name)
        request.query = {
            'comp': 'pagelist',
            'snapshot': _to_str(snapshot),
            'timeout': _int_to_str(timeout),
        }
        request.headers = {'x-ms-lease-id': _to_str(lease_id)}
        if offset is not None or length is not None:
            end_range = offset + length - 1 if offset is not None and length is not None else None
            _validate_and_format_range_headers(
                request,
                offset,
                end_range,
                start_range_required=True,
                end_range_required=False,
                align_to_page=True)

        return self._perform_request(request, _convert_xml_to_page_ranges, operation_context=operation_context)

    # ----Convenience APIs-----------------------------------------------------

    def create_blob_from_stream(
            self, container_name, blob_name, stream, count, content_settings=None,
            metadata=None, validate_content=False, progress_callback=None,
            max_connections=2, access_condition=None, timeout=None, operation_context=None):
        '''
        Creates a new blob from a file/stream, or updates the content of an
        existing blob, with automatic chunking and progress notifications.

        The blob is created with a length of count bytes, then written in page
        ranges of MAX_PAGE_SIZE bytes.

        :param str container_name:
            Name of existing container.
        :param str blob_name:
            Name of blob to create or update.
        :param io.IOBase stream:
            Opened file/stream to upload as the blob content.
        :param int count:
            Number of bytes to read from the stream. This is required, a page
            blob cannot be created without knowing its size. Must be a multiple
            of 512.
        :param ~azstorage.blob.models.ContentSettings content_settings:
            ContentSettings object used to set blob properties.
        :param metadata:
            Name-value pairs associated with the blob as metadata.
        :type metadata: dict(str, str)
        :param bool validate_content:
            If true, calculates an MD5 hash for each page range.
        :param progress_callback:
            Callback for progress with signature function(current, total) where
            current is the number of bytes transfered so far, and total is the
            size of the blob.
        :type progress_callback: func(current, total)
        :param int max_connections:
            Maximum number of parallel connections to use. Writes after the first
            are no longer conditional on the ETag of the previous one when this is
            more than one.
        :param ~azstorage.blob.models.AccessCondition access_condition:
            Conditions the blob is only replaced under.
        :param int timeout:
            The timeout parameter is expressed in seconds. This method may make
            multiple calls to the Azure service and the timeout will apply to
            each call individually.
        :param ~azstorage.common.models.OperationContext operation_context:
            Tracks the attempts of every request of the upload.
        :return: ETag, last modified and sequence number of the Page Blob
        :rtype: :class:`~azstorage.blob.models.PageBlobProperties`
        '''
        _validate_not_none('container_name', container_name)
        _validate_not_none('blob_name', blob_name)
        _validate_not_none('stream', stream)
        _validate_not_none('count', count)
        _validate_encryption_required(self.require_encryption, self.key_encryption_key)

        if count < 0:
            raise ValueError(_ERROR_VALUE_NEGATIVE.format('count'))
        _validate_page_blob_size(count)

        operation_context = operation_context or OperationContext()
        content_encryption_key, initialization_vector, encryption_data = \
            _generate_blob_encryption_data(self.key_encryption_key)
        if encryption_data is not None:
            metadata = dict(metadata) if metadata else {}
            metadata['encryptiondata'] = encryption_data

        response = self._create_blob(
            container_name=container_name,
            blob_name=blob_name,
            content_length=count,
            content_settings=content_settings,
            metadata=metadata,
            access_condition=access_condition,
            timeout=timeout,
            operation_context=operation_context,
        )

        if progress_callback:
            progress_callback(0, count)

        # Page writes are conditional on the new blob, not on the one it replaced
        write_condition = AccessCondition(
            if_match=response.etag,
            lease_id=access_condition.lease_id if access_condition else None)

        # Without padding the ciphertext of each aligned range has the same length
        encryptor, _ = _get_blob_encryptor_and_padder(content_encryption_key, initialization_vector, False)
        uploader = _PageBlobChunkUploader(
            self,
            container_name,
            blob_name,
            count,
            max_connections > 1,
            progress_callback,
            validate_content,
            write_condition,
            timeout,
            operation_context,
        )

        logger.info('Uploading %s bytes to %s/%s in page ranges of %s bytes.',
                    count, container_name, blob_name, self.MAX_PAGE_SIZE)
        blob_stream = BlobOutputStream(uploader, self.MAX_PAGE_SIZE, max_connections,
                                       encryptor=encryptor, alignment=_PAGE_SIZE)
        with blob_stream:
            blob_stream.write_stream(stream, count)

        return blob_stream.result or response

    def create_blob_from_bytes(
            self, container_name, blob_name, blob, index=0, count=None,
            content_settings=None, metadata=None, validate_content=False,
            progress_callback=None, max_connections=2, access_condition=None,
            timeout=None, operation_context=None):
        '''
        Creates a new blob from an array of bytes, or updates the content
        of an existing blob, with automatic chunking and progress
        notifications.

        :param str container_name:
            Name of existing container.
        :param str blob_name:
            Name of blob to create or update.
        :param bytes blob:
            Content of blob as an array of bytes.
        :param int index:
            Start index in the byte array.
        :param int count:
            Number of bytes to upload. Set to None or negative value to upload
            all bytes starting from index. Must be a multiple of 512.
        :param ~azstorage.blob.models.ContentSettings content_settings:
            ContentSettings object used to set blob properties.
        :param metadata:
            Name-value pairs associated with the blob as metadata.
        :type metadata: dict(str, str)
        :param bool validate_content:
            If true, calculates an MD5 hash for each page range.
        :param progress_callback:
            Callback for progress with signature function(current, total) where
            current is the number of bytes transfered so far, and total is the
            size of the blob.
        :type progress_callback: func(current, total)
        :param int max_connections:
            Maximum number of parallel connections to use.
        :param ~azstorage.blob.models.AccessCondition access_condition:
            Conditions the blob is only replaced under.
        :param int timeout:
            The timeout parameter is expressed in seconds. This method may make
            multiple calls to the Azure service and the timeout will apply to
            each call individually.
        :param ~azstorage.common.models.OperationContext operation_context:
            Tracks the attempts of every request of the upload.
        :return: ETag, last modified and sequence number of the Page Blob
        :rtype: :class:`~azstorage.blob.models.PageBlobProperties`
        '''
        _validate_not_none('container_name', container_name)
        _validate_not_none('blob_name', blob_name)
        _validate_not_none('blob', blob)
        _validate_type_bytes('blob', blob)

        if index < 0:
            raise IndexError(_ERROR_VALUE_NEGATIVE.format('index'))

        if count is None or count < 0:
            count = len(blob) - index

        stream = BytesIO(blob)
        stream.seek(index)

        return self.create_blob_from_stream(
            container_name=container_name,
            blob_name=blob_name,
            stream=stream,
            count=count,
            content_settings=content_settings,
            metadata=metadata,
            validate_content=validate_content,
            progress_callback=progress_callback,
            max_connections=max_connections,
            access_condition=access_condition,
            timeout=timeout,
            operation_context=operation_context)

    def open_write_new(
            self, container_name, blob_name, content_length, content_settings=None,
            metadata=None, validate_content=False, max_connections=1,
            access_condition=None, timeout=None, operation_context=None):
        '''
        Creates a page blob of content_length bytes and opens a stream which
        writes to it from the start. Each MAX_PAGE_SIZE bytes written are sent
        as one page range; everything written must add up to a multiple of
        512 bytes by the time the stream is flushed or closed.

        :param str container_name:
            Name of existing container.
        :param str blob_name:
            Name of blob to create or replace.
        :param int content_length:
            The size of the new blob. Must be a multiple of 512.
        :param ~azstorage.blob.models.ContentSettings content_settings:
            ContentSettings object used to set blob properties.
        :param metadata:
            Name-value pairs associated with the blob as metadata.
        :type metadata: dict(str, str)
        :param bool validate_content:
            If true, calculates an MD5 hash for each page range.
        :param int max_connections:
            The most page ranges to write at once.
        :param ~azstorage.blob.models.AccessCondition access_condition:
            Conditions the blob is only replaced under.
        :param int timeout:
            The timeout parameter is expressed in seconds, per request.
        :param ~azstorage.common.models.OperationContext operation_context:
            Tracks the attempts of every request of the upload.
        :rtype: :class:`~azstorage.blob.blobstream.BlobOutputStream`
        '''
        _validate_encryption_unsupported(self.require_encryption, self.key_encryption_key)
        operation_context = operation_context or OperationContext()

        response = self._create_blob(
            container_name,
            blob_name,
            content_length,
            content_settings=content_settings,
            metadata=metadata,
            access_condition=access_condition,
            timeout=timeout,
            operation_context=operation_context,
        )

        write_condition = AccessCondition(
            if_match=response.etag,
            lease_id=access_condition.lease_id if access_condition else None)
        return self._open_page_write(container_name, blob_name, 0, content_length, validate_content,
                                     max_connections, write_condition, timeout, operation_context)

    def open_write_existing(
            self, container_name, blob_name, offset=0, validate_content=False,
            max_connections=1, access_condition=None, timeout=None, operation_context=None):
        '''
        Opens a stream which writes to an existing page blob, starting at
        offset. The blob keeps its size. Writes are conditional on the blob not
        changing in between, unless more than one connection is used.

        :param str container_name:
            Name of existing container.
        :param str blob_name:
            Name of existing page blob.
        :param int offset:
            Where to start writing. Must be a multiple of 512.
        :param bool validate_content:
            If true, calculates an MD5 hash for each page range.
        :param int max_connections:
            The most page ranges to write at once.
        :param ~azstorage.blob.models.AccessCondition access_condition:
            Conditions the blob is only written under.
        :param int timeout:
            The timeout parameter is expressed in seconds, per request.
        :param ~azstorage.common.models.OperationContext operation_context:
            Tracks the attempts of every request of the upload.
        :rtype: :class:`~azstorage.blob.blobstream.BlobOutputStream`
        '''
        _validate_encryption_unsupported(self.require_encryption, self.key_encryption_key)
        _validate_not_none('offset', offset)
        if offset % _PAGE_SIZE != 0:
            raise ValueError(_ERROR_PAGE_BLOB_START_ALIGNMENT)
        operation_context = operation_context or OperationContext()

        blob = self.get_blob_properties(container_name, blob_name, access_condition=access_condition,
                                        timeout=timeout, operation_context=operation_context)
        if blob.properties.blob_type != _BlobTypes.PageBlob:
            raise ValueError(_ERROR_NOT_PAGE_BLOB.format(blob_name, blob.properties.blob_type))

        write_condition = copy.copy(access_condition) if access_condition else AccessCondition()
        write_condition.if_match = blob.properties.etag
        return self._open_page_write(container_name, blob_name, offset, blob.properties.content_length,
                                     validate_content, max_connections, write_condition, timeout,
                                     operation_context)

    def _open_page_write(self, container_name, blob_name, offset, blob_size, validate_content,
                         max_connections, access_condition, timeout, operation_context):
        uploader = _PageBlobChunkUploader(
            self,
            container_name,
            blob_name,
            blob_size,
            max_connections > 1,
            None,
            validate_content,
            access_condition,
            timeout,
            operation_context,
            start_offset=offset,
        )
        return BlobOutputStream(uploader, self.MAX_PAGE_SIZE, max_connections, alignment=_PAGE_SIZE)

    def _create_blob(
            self, container_name, blob_name, content_length, content_settings=None,
            sequence_number=None, metadata=None, access_condition=None, timeout=None,
            operation_context=None):
        _validate_not_none('container_name', container_name)
        _validate_not_none('blob_name', blob_name)
        _validate_not_none('content_length', content_length)
        _validate_page_blob_size(content_length)
        request = HTTPRequest()
        request.method = 'PUT'
        request.host_locations = self._get_host_locations()
        request.path = _get_path(container_name, blob_name)
        request.query = {'timeout': _int_to_str(timeout)}
        request.headers = {
            'x-ms-blob-type': _to_str(self.blob_type),
            'x-ms-blob-content-length': _to_str(content_length),
            'x-ms-blob-sequence-number': _to_str(sequence_number),
        }
        if content_settings is not None:
            request.headers.update(content_settings.to_headers())
        if access_condition is not None:
            request.headers.update(access_condition.to_headers())
        _add_metadata_headers(metadata, request)

        return self._perform_request(request, _parse_base_properties, expected_status=(201,),
                                     operation_context=operation_context)

    def _update_page(
            self, container_name, blob_name, page, offset, length, validate_content=False,
            access_condition=None, timeout=None, operation_context=None):
        return self._put_pages(
            _PageWriteOperation.Update,
            container_name,
            blob_name,
            page,
            offset,
            length,
            validate_content=validate_content,
            access_condition=access_condition,
            timeout=timeout,
            operation_context=operation_context,
        )

    def _put_pages(
            self, page_write, container_name, blob_name, page, offset, length,
            validate_content=False, access_condition=None, timeout=None, operation_context=None):
        '''
        Writes or clears the pages in [offset, offset + length - 1].

        An update sends the page data as the body; bytes are sent as they are
        and a stream is sent through a view of its next length bytes, rewound
        before every retry. A clear sends no body.
        '''
        _validate_not_none('container_name', container_name)
        _validate_not_none('blob_name', blob_name)
        _validate_not_none('offset', offset)
        _validate_not_none('length', length)
        if length <= 0:
            raise ValueError(_ERROR_PAGE_RANGE_EMPTY)
        if page_write == _PageWriteOperation.Update:
            if length > _MAX_PAGE_UPDATE_SIZE:
                raise ValueError(_ERROR_PAGE_UPDATE_TOO_LARGE.format(_MAX_PAGE_UPDATE_SIZE, length))
            page = _get_data_bytes_or_stream_only('page', page)
            if isinstance(page, bytes):
                if len(page) != length:
                    raise ValueError(_ERROR_PAGE_DATA_LENGTH.format(len(page), length))
            else:
                start = _checkpoint(page)
                if start is None:
                    raise ValueError(_ERROR_PAGE_DATA_LENGTH.format('an unknown number of', length))
                available = page.seek(0, SEEK_END) - start
                page.seek(start, SEEK_SET)
                if available < length:
                    raise ValueError(_ERROR_PAGE_DATA_LENGTH.format(available, length))
                page = _SubStream(page, start, length)
        else:
            page = None

        # raises on misaligned ranges before anything is sent
        range_request = HTTPRequest()
        _validate_and_format_range_headers(
            range_request,
            offset,
            offset + length - 1,
            align_to_page=True)
        range_headers = range_request.headers
        content_md5 = _get_content_md5(page) if page is not None and validate_content else None

        def _build_request():
            request = HTTPRequest()
            request.method = 'PUT'
            request.host_locations = self._get_host_locations()
            request.path = _get_path(container_name, blob_name)
            request.query = {
                'comp': 'page',
                'timeout': _int_to_str(timeout),
            }
            request.body = page
            return request

        def _set_headers(request):
            request.headers.update(range_headers)
            request.headers['x-ms-page-write'] = _to_str(page_write)
            request.headers[_HEADER_CONTENT_MD5] = content_md5
            if access_condition is not None:
                request.headers.update(access_condition.to_headers())

        def _recover(request):
            if page is not None and not isinstance(page, bytes):
                _rewind(page, 0)

        storage_request = _StorageRequest(_build_request,
                                          set_headers=_set_headers,
                                          post_process_response=_parse_page_properties,
                                          recovery_action=_recover,
                                          expected_status=(201,))
        logger.debug('%s pages %s of %s/%s.', page_write, range_headers['x-ms-range'], container_name, blob_name)
        return self._execute_request(storage_request, operation_context)


def _validate_page_blob_size(content_length):
    if content_length % _PAGE_SIZE != 0:
        raise ValueError(_ERROR_PAGE_BLOB_SIZE_ALIGNMENT.format(content_length))


def _get_remaining_length(page):
    if isinstance(page, bytes):
        return len(page)
    start = _checkpoint(page)
    if start is None:
        return None
    end = page.seek(0, SEEK_END)
    page.seek(start, SEEK_SET)
    return end - start
