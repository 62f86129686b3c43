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
from io import BytesIO
from os import path

from ..common._common_conversion import (
    _encode_base64,
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
    _validate_not_negative,
    _validate_not_none,
    _validate_type_bytes,
)
from ..common._http import (
    HTTPRequest,
    _StorageRequest,
)
from ..common._serialization import (
    _add_metadata_headers,
    _get_data_bytes_only,
)
from ..common._streams import (
    StreamDescriptor,
    _analyze_stream,
    _buffer_stream,
    _checkpoint,
    _get_content_md5,
)
from ..common.models import OperationContext
from ._constants import (
    _DEFAULT_BLOCK_SIZE,
    _DEFAULT_MAX_SINGLE_PUT_SIZE,
    _MAX_BLOCK_NUMBER,
    _MAX_BLOCK_SIZE,
    _MIN_BLOCK_SIZE,
)
from ._deserialization import (
    _convert_xml_to_block_list,
    _parse_base_properties,
)
from ._encryption import (
    _encrypt_stream_if_under_threshold,
    _generate_blob_encryption_data,
    _get_blob_encryptor_and_padder,
)
from ._error import (
    _ERROR_BLOB_TOO_LARGE,
    _ERROR_BLOCK_COUNT_EXCEEDED,
)
from ._serialization import (
    _convert_block_list_to_xml,
    _get_path,
    _validate_block_ids,
)
from ._upload_chunking import (
    _BlockBlobChunkUploader,
    _SubStream,
)
from .baseblobservice import BaseBlobService
from .blobstream import BlobOutputStream
from .models import (
    ContentSettings,
    _BlobTypes,
)

logger = logging.getLogger(__name__)


def _get_block_size(blob_size, block_size, block_size_modified):
    '''
    Returns the block size to upload blob_size bytes with.

    The configured block size is kept if the blob fits in the maximum number
    of blocks. Otherwise the default block size is raised just enough to fit,
    while a block size the user chose is an error.

    :param int blob_size: The number of bytes to upload, or None if unknown.
    :param int block_size: The configured block size.
    :param bool block_size_modified: Whether the user set the block size.
    :rtype: int
    '''
    if blob_size is None:
        return block_size

    block_count = (blob_size + block_size - 1) // block_size
    if block_count <= _MAX_BLOCK_NUMBER:
        return block_size

    if block_size_modified:
        raise ValueError(_ERROR_BLOCK_COUNT_EXCEEDED.format(blob_size, block_size, block_count, _MAX_BLOCK_NUMBER))

    scaled_block_size = (blob_size + _MAX_BLOCK_NUMBER - 1) // _MAX_BLOCK_NUMBER
    if scaled_block_size > _MAX_BLOCK_SIZE:
        raise ValueError(_ERROR_BLOB_TOO_LARGE.format(_MAX_BLOCK_SIZE * _MAX_BLOCK_NUMBER, blob_size))

    logger.info('Raising the block size from %s to %s bytes to upload %s bytes in at most %s blocks.',
                block_size, scaled_block_size, blob_size, _MAX_BLOCK_NUMBER)
    return scaled_block_size


class BlockBlobService(BaseBlobService):
    '''
    Block blobs let you upload large blobs efficiently. Block blobs are comprised
    of blocks, each of which is identified by a block ID. You create or modify a
    block blob by writing a set of blocks and committing them by their block IDs.
    Each block can be a different size, up to a maximum of 100 MB, and a block blob
    can include up to 50,000 blocks. The maximum size of a block blob is therefore
    approximately 4.75 TB (100 MB X 50,000 blocks). If you are writing a block
    blob that is no more than 64 MB in size, you can upload it in its entirety with
    a single write operation; see create_blob_from_bytes.

    :ivar int MAX_SINGLE_PUT_SIZE:
        The largest size upload supported in a single put call. This is used by
        the create_blob_from_* methods if the content length is known and is less
        than this value.
    :ivar bool store_blob_content_md5:
        Whether uploads compute the MD5 of the whole blob and store it as the
        blob's Content-MD5 property.
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
        self.blob_type = _BlobTypes.BlockBlob
        super(BlockBlobService, self).__init__(
            account_name, sas_token, protocol, endpoint_suffix, primary_endpoint,
            secondary_endpoint, request_session)

        self.MAX_SINGLE_PUT_SIZE = _DEFAULT_MAX_SINGLE_PUT_SIZE
        self.store_blob_content_md5 = False
        self._max_block_size = _DEFAULT_BLOCK_SIZE
        self._max_block_size_modified = False

    @property
    def MAX_BLOCK_SIZE(self):
        '''
        The size of the blocks used by chunked uploads, between 16 KB and
        100 MB. Defaults to 4 MB. A default block size is raised automatically
        when a blob would need more than 50,000 blocks; a block size set here
        is used as is, and such uploads fail instead.
        '''
        return self._max_block_size

    @MAX_BLOCK_SIZE.setter
    def MAX_BLOCK_SIZE(self, value):
        _validate_in_range('MAX_BLOCK_SIZE', value, _MIN_BLOCK_SIZE, _MAX_BLOCK_SIZE)
        self._max_block_size = value
        self._max_block_size_modified = True

    def put_block(self, container_name, blob_name, block, block_id,
                  validate_content=False, lease_id=None, timeout=None, operation_context=None):
        '''
        Creates a new block to be committed as part of a blob.

        :param str container_name:
            Name of existing container.
        :param str blob_name:
            Name of blob.
        :param bytes block:
            Content of the block.
        :param str block_id:
            A valid Base64 string value that identifies the
            block. Prior to encoding, the string must be less than or equal to 64
            bytes in size. For a given blob, the length of the value specified for
            the block_id parameter must be the same size for each block. Note that
            the Base64 string must be URL-encoded.
        :param bool validate_content:
            If true, calculates an MD5 hash of the block content. The storage
            service checks the hash of the content that has arrived
            with the hash that was sent. This is primarily valuable for detecting
            bitflips on the wire if using http instead of https as https (the default)
            will already validate. Note that this MD5 hash is not stored with the
            blob.
        :param str lease_id:
            Required if the blob has an active lease.
        :param int timeout:
            The timeout parameter is expressed in seconds.
        :param ~azstorage.common.models.OperationContext operation_context:
            Tracks the attempts of the request.
        :return: ETag and last modified properties for the Block Blob
        :rtype: :class:`~azstorage.blob.models.ResourceProperties`
        '''
        _validate_encryption_unsupported(self.require_encryption, self.key_encryption_key)

        return self._put_block(
            container_name,
            blob_name,
            block,
            block_id,
            validate_content=validate_content,
            lease_id=lease_id,
            timeout=timeout,
            operation_context=operation_context,
        )

    def put_block_list(
            self, container_name, blob_name, block_list, content_settings=None,
            metadata=None, validate_content=False, access_condition=None, timeout=None,
            operation_context=None):
        '''
        Writes a blob by specifying the list of block IDs that make up the blob.
        In order to be written as part of a blob, a block must have been
        successfully written to the server in a prior Put Block operation.

        You can call Put Block List to update a blob by uploading only those
        blocks that have changed, then committing the new and existing
        blocks together. You can do this by specifying whether to commit a
        block from the committed block list or from the uncommitted block
        list, or to commit the most recently uploaded version of the block,
        whichever list it may belong to.

        :param str container_name:
            Name of existing container.
        :param str blob_name:
            Name of existing blob.
        :param block_list:
            A list of :class:`~azstorage.blob.models.BlobBlock` containing the block ids and block state.
        :type block_list: list(:class:`~azstorage.blob.models.BlobBlock`)
        :param ~azstorage.blob.models.ContentSettings content_settings:
            ContentSettings object used to set properties on the blob.
        :param metadata:
            Name-value pairs associated with the blob as metadata.
        :type metadata: dict(str, str)
        :param bool validate_content:
            If true, calculates an MD5 hash of the block list content. The storage
            service checks the hash of the block list content that has arrived
            with the hash that was sent. This is primarily valuable for detecting
            bitflips on the wire if using http instead of https as https (the default)
            will already validate. Note that this check is associated with
            the block list content, and not with the content of the blob itself.
        :param ~azstorage.blob.models.AccessCondition access_condition:
            Conditions the commit only succeeds under.
        :param int timeout:
            The timeout parameter is expressed in seconds.
        :param ~azstorage.common.models.OperationContext operation_context:
            Tracks the attempts of the request.
        :return: ETag and last modified properties for the updated Block Blob
        :rtype: :class:`~azstorage.blob.models.ResourceProperties`
        '''
        _validate_encryption_unsupported(self.require_encryption, self.key_encryption_key)

        return self._put_block_list(
            container_name,
            blob_name,
            block_list,
            content_settings=content_settings,
            metadata=metadata,
            validate_content=validate_content,
            access_condition=access_condition,
            timeout=timeout,
            operation_context=operation_context,
        )

    def get_block_list(self, container_name, blob_name, snapshot=None,
                       block_list_type=None, lease_id=None, timeout=None, operation_context=None):
        '''
        Retrieves the list of blocks that have been uploaded as part of a
        block blob. There are two block lists maintained for a blob:
            Committed Block List:
                The list of blocks that have been successfully committed to a
                given blob with Put Block List.
            Uncommitted Block List:
                The list of blocks that have been uploaded for a blob using
                Put Block, but that have not yet been committed. These blocks
                are stored in Azure in association with a blob, but do not yet
                form part of the blob.

        :param str container_name:
            Name of existing container.
        :param str blob_name:
            Name of existing blob.
        :param str snapshot:
            Datetime to determine the time to retrieve the blocks.
        :param str block_list_type:
            Specifies whether to return the list of committed blocks, the list
            of uncommitted blocks, or both lists together. Valid values are:
            committed, uncommitted, or all.
        :param str lease_id:
            Required if the blob has an active lease.
        :param int timeout:
            The timeout parameter is expressed in seconds.
        :param ~azstorage.common.models.OperationContext operation_context:
            Tracks the attempts of the request.
        :return: list committed and/or uncommitted blocks for Block Blob
        :rtype: :class:`~azstorage.blob.models.BlobBlockList`
        '''
        _validate_not_none('container_name', container_name)
        _validate_not_none('blob_name', blob_name)
        request = HTTPRequest()
        request.method = 'GET'
        request.host_locations = self._get_host_locations(secondary=True)
        request.path = _get_path(container_name, blob_name)
        request.query = {
            'comp': 'blocklist',
            'snapshot': _to_str(snapshot),
            'blocklisttype': _to_str(block_list_type),
            'timeout': _int_to_str(timeout),
        }
        request.headers = {'x-ms-lease-id': _to_str(lease_id)}

        return self._perform_request(request, _convert_xml_to_block_list, operation_context=operation_context)

    # ----Convenience APIs-----------------------------------------------------

    def create_blob_from_path(
            self, container_name, blob_name, file_path, content_settings=None,
            metadata=None, validate_content=False, progress_callback=None,
            max_connections=2, access_condition=None, timeout=None, operation_context=None):
        '''
        Creates a new blob from a file path, or updates the content of an
        existing blob, with automatic chunking and progress notifications.

        :param str container_name:
            Name of existing container.
        :param str blob_name:
            Name of blob to create or update.
        :param str file_path:
            Path of the file to upload as the blob content.
        :param ~azstorage.blob.models.ContentSettings content_settings:
            ContentSettings object used to set blob properties.
        :param metadata:
            Name-value pairs associated with the blob as metadata.
        :type metadata: dict(str, str)
        :param bool validate_content:
            If true, calculates an MD5 hash for each chunk of the blob. The storage
            service checks the hash of the content that has arrived with the hash
            that was sent.
        :param progress_callback:
            Callback for progress with signature function(current, total) where
            current is the number of bytes transfered so far, and total is the
            size of the blob, or None if the total size is unknown.
        :type progress_callback: func(current, total)
        :param int max_connections:
            Maximum number of parallel connections to use when the blob size exceeds
            MAX_SINGLE_PUT_SIZE.
        :param ~azstorage.blob.models.AccessCondition access_condition:
            Conditions the upload only succeeds under.
        :param int timeout:
            The timeout parameter is expressed in seconds. This method may make
            multiple calls to the Azure service and the timeout will apply to
            each call individually.
        :param ~azstorage.common.models.OperationContext operation_context:
            Tracks the attempts of every request of the upload.
        :return: ETag and last modified properties for the Block Blob
        :rtype: :class:`~azstorage.blob.models.ResourceProperties`
        '''
        _validate_not_none('container_name', container_name)
        _validate_not_none('blob_name', blob_name)
        _validate_not_none('file_path', file_path)

        count = path.getsize(file_path)
        with open(file_path, 'rb') as stream:
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

    def create_blob_from_stream(
            self, container_name, blob_name, stream, count=None,
            content_settings=None, metadata=None, validate_content=False,
            progress_callback=None, max_connections=2, access_condition=None,
            timeout=None, operation_context=None):
        '''
        Creates a new blob from a file/stream, or updates the content of
        an existing blob, with automatic chunking and progress
        notifications.

        Content of at most MAX_SINGLE_PUT_SIZE bytes is sent in one request.
        Larger content, and content of a stream which cannot be rewound and
        holds more than MAX_SINGLE_PUT_SIZE bytes, is uploaded in blocks of
        MAX_BLOCK_SIZE bytes which are then committed in order. If any block
        fails the upload is aborted and nothing is committed.

        :param str container_name:
            Name of existing container.
        :param str blob_name:
            Name of blob to create or update.
        :param io.IOBase stream:
            Opened file/stream to upload as the blob content.
        :param int count:
            Number of bytes to read from the stream. This is optional, but
            should be supplied for optimal performance.
        :param ~azstorage.blob.models.ContentSettings content_settings:
            ContentSettings object used to set blob properties.
        :param metadata:
            Name-value pairs associated with the blob as metadata.
        :type metadata: dict(str, str)
        :param bool validate_content:
            If true, calculates an MD5 hash for each chunk of the blob. The storage
            service checks the hash of the content that has arrived with the hash
            that was sent. This is primarily valuable for detecting bitflips on
            the wire if using http instead of https as https (the default) will
            already validate. Note that this MD5 hash is not stored with the
            blob.
        :param progress_callback:
            Callback for progress with signature function(current, total) where
            current is the number of bytes transfered so far, and total is the
            size of the blob, or None if the total size is unknown.
        :type progress_callback: func(current, total)
        :param int max_connections:
            Maximum number of parallel connections to use when the blob size exceeds
            MAX_SINGLE_PUT_SIZE.
        :param ~azstorage.blob.models.AccessCondition access_condition:
            Conditions the upload only succeeds under.
        :param int timeout:
            The timeout parameter is expressed in seconds. This method may make
            multiple calls to the Azure service and the timeout will apply to
            each call individually.
        :param ~azstorage.common.models.OperationContext operation_context:
            Tracks the attempts of every request of the upload.
        :return: ETag and last modified properties for the Block Blob
        :rtype: :class:`~azstorage.blob.models.ResourceProperties`
        '''
        _validate_not_none('container_name', container_name)
        _validate_not_none('blob_name', blob_name)
        _validate_not_none('stream', stream)
        _validate_not_negative('count', count)
        _validate_encryption_required(self.require_encryption, self.key_encryption_key)

        operation_context = operation_context or OperationContext()

        # A stream which cannot be rewound is buffered, if it fits a single put
        start = _checkpoint(stream)
        if start is None:
            stream, buffered = _buffer_stream(stream, count, self.MAX_SINGLE_PUT_SIZE)
            if buffered:
                start = 0

        # a known count over the threshold already rules out a single put
        descriptor = StreamDescriptor(length=count)
        if start is not None and (count is None or count <= self.MAX_SINGLE_PUT_SIZE):
            descriptor = _analyze_stream(
                stream, count, self.MAX_SINGLE_PUT_SIZE, rewind_source_stream=True,
                calculate_md5=self.store_blob_content_md5 and self.key_encryption_key is None)
        blob_size = count if count is not None else descriptor.length

        use_single_put = start is not None and descriptor.length is not None \
            and descriptor.length <= self.MAX_SINGLE_PUT_SIZE
        encryption = _generate_blob_encryption_data(self.key_encryption_key)
        body = None
        content_md5 = descriptor.md5
        if use_single_put:
            if self.key_encryption_key is not None:
                content_encryption_key, initialization_vector, _ = encryption
                body = _encrypt_stream_if_under_threshold(stream, descriptor.length, self.MAX_SINGLE_PUT_SIZE,
                                                          content_encryption_key, initialization_vector)
                use_single_put = body is not None
                if body is not None and self.store_blob_content_md5:
                    content_md5 = _get_content_md5(body)
            else:
                body = _SubStream(stream, start, descriptor.length)

        if use_single_put:
            logger.info('Uploading %s bytes to %s/%s in a single request.',
                        descriptor.length, container_name, blob_name)
            if progress_callback:
                progress_callback(0, blob_size)

            if content_md5 is not None:
                content_settings = copy.copy(content_settings) if content_settings else ContentSettings()
                content_settings.content_md5 = content_md5

            resp = self._put_blob(
                container_name=container_name,
                blob_name=blob_name,
                blob=body,
                content_settings=content_settings,
                metadata=self._add_encryption_metadata(metadata, encryption),
                validate_content=validate_content,
                access_condition=access_condition,
                timeout=timeout,
                operation_context=operation_context)

            if progress_callback:
                progress_callback(blob_size, blob_size)
            return resp

        block_size = _get_block_size(blob_size, self.MAX_BLOCK_SIZE, self._max_block_size_modified)
        logger.info('Uploading %s bytes to %s/%s in blocks of %s bytes.',
                    blob_size if blob_size is not None else 'an unknown number of',
                    container_name, blob_name, block_size)

        if progress_callback:
            progress_callback(0, blob_size)

        blob_stream = self._open_block_upload(
            container_name, blob_name, blob_size, block_size, content_settings, metadata,
            validate_content, progress_callback, max_connections, access_condition, timeout,
            operation_context, encryption)
        with blob_stream:
            blob_stream.write_stream(stream, count)

        return blob_stream.result

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
            Start index in the array of bytes.
        :param int count:
            Number of bytes to upload. Set to None or negative value to upload
            all bytes starting from index.
        :param ~azstorage.blob.models.ContentSettings content_settings:
            ContentSettings object used to set blob properties.
        :param metadata:
            Name-value pairs associated with the blob as metadata.
        :type metadata: dict(str, str)
        :param bool validate_content:
            If true, calculates an MD5 hash for each chunk of the blob.
        :param progress_callback:
            Callback for progress with signature function(current, total) where
            current is the number of bytes transfered so far, and total is the
            size of the blob, or None if the total size is unknown.
        :type progress_callback: func(current, total)
        :param int max_connections:
            Maximum number of parallel connections to use when the blob size exceeds
            MAX_SINGLE_PUT_SIZE.
        :param ~azstorage.blob.models.AccessCondition access_condition:
            Conditions the upload only succeeds under.
        :param int timeout:
            The timeout parameter is expressed in seconds. This method may make
            multiple calls to the Azure service and the timeout will apply to
            each call individually.
        :param ~azstorage.common.models.OperationContext operation_context:
            Tracks the attempts of every request of the upload.
        :return: ETag and last modified properties for the Block Blob
        :rtype: :class:`~azstorage.blob.models.ResourceProperties`
        '''
        _validate_not_none('container_name', container_name)
        _validate_not_none('blob_name', blob_name)
        _validate_not_none('blob', blob)
        _validate_not_none('index', index)
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

    def create_blob_from_text(
            self, container_name, blob_name, text, encoding='utf-8',
            content_settings=None, metadata=None, validate_content=False,
            progress_callback=None, max_connections=2, access_condition=None,
            timeout=None, operation_context=None):
        '''
        Creates a new blob from str/unicode, or updates the content of an
        existing blob, with automatic chunking and progress notifications.

        :param str container_name:
            Name of existing container.
        :param str blob_name:
            Name of blob to create or update.
        :param str text:
            Text to upload to the blob.
        :param str encoding:
            Python encoding to use to convert the text to bytes.
        :param ~azstorage.blob.models.ContentSettings content_settings:
            ContentSettings object used to set blob properties.
        :param metadata:
            Name-value pairs associated with the blob as metadata.
        :type metadata: dict(str, str)
        :param bool validate_content:
            If true, calculates an MD5 hash for each chunk of the blob.
        :param progress_callback:
            Callback for progress with signature function(current, total) where
            current is the number of bytes transfered so far, and total is the
            size of the blob, or None if the total size is unknown.
        :type progress_callback: func(current, total)
        :param int max_connections:
            Maximum number of parallel connections to use when the blob size exceeds
            MAX_SINGLE_PUT_SIZE.
        :param ~azstorage.blob.models.AccessCondition access_condition:
            Conditions the upload only succeeds under.
        :param int timeout:
            The timeout parameter is expressed in seconds. This method may make
            multiple calls to the Azure service and the timeout will apply to
            each call individually.
        :param ~azstorage.common.models.OperationContext operation_context:
            Tracks the attempts of every request of the upload.
        :return: ETag and last modified properties for the Block Blob
        :rtype: :class:`~azstorage.blob.models.ResourceProperties`
        '''
        _validate_not_none('container_name', container_name)
        _validate_not_none('blob_name', blob_name)
        _validate_not_none('text', text)

        if not isinstance(text, bytes):
            _validate_not_none('encoding', encoding)
            text = text.encode(encoding)

        return self.create_blob_from_bytes(
            container_name=container_name,
            blob_name=blob_name,
            blob=text,
            index=0,
            count=len(text),
            content_settings=content_settings,
            metadata=metadata,
            validate_content=validate_content,
            progress_callback=progress_callback,
            max_connections=max_connections,
            access_condition=access_condition,
            timeout=timeout,
            operation_context=operation_context)

    def open_write(self, container_name, blob_name, content_settings=None, metadata=None,
                   validate_content=False, max_connections=1, access_condition=None,
                   timeout=None, operation_context=None):
        '''
        Opens a stream which uploads everything written to it as the content
        of a block blob. Each MAX_BLOCK_SIZE bytes written are uploaded as one
        block. Closing the stream uploads the rest and commits the blob; it is
        best used as a context manager::

            with service.open_write('container', 'blob') as stream:
                stream.write(b'...')

        If key_encryption_key is set the content is encrypted as it is written.

        :param str container_name:
            Name of existing container.
        :param str blob_name:
            Name of blob to create or update.
        :param ~azstorage.blob.models.ContentSettings content_settings:
            ContentSettings object used to set blob properties on commit.
        :param metadata:
            Name-value pairs associated with the blob as metadata.
        :type metadata: dict(str, str)
        :param bool validate_content:
            If true, calculates an MD5 hash for each block.
        :param int max_connections:
            The most blocks to upload at once.
        :param ~azstorage.blob.models.AccessCondition access_condition:
            Conditions the commit only succeeds under.
        :param int timeout:
            The timeout parameter is expressed in seconds, per request.
        :param ~azstorage.common.models.OperationContext operation_context:
            Tracks the attempts of every request of the upload.
        :return: A stream to write the blob content to.
        :rtype: :class:`~azstorage.blob.blobstream.BlobOutputStream`
        '''
        _validate_not_none('container_name', container_name)
        _validate_not_none('blob_name', blob_name)
        _validate_encryption_required(self.require_encryption, self.key_encryption_key)

        return self._open_block_upload(
            container_name, blob_name, None, self.MAX_BLOCK_SIZE, content_settings, metadata,
            validate_content, None, max_connections, access_condition, timeout,
            operation_context or OperationContext(),
            _generate_blob_encryption_data(self.key_encryption_key))

    def _open_block_upload(self, container_name, blob_name, blob_size, block_size, content_settings,
                           metadata, validate_content, progress_callback, max_connections,
                           access_condition, timeout, operation_context, encryption):
        content_encryption_key, initialization_vector, _ = encryption
        encryptor, padder = _get_blob_encryptor_and_padder(content_encryption_key, initialization_vector, True)

        uploader = _BlockBlobChunkUploader(
            self,
            container_name,
            blob_name,
            blob_size,
            max_connections > 1,
            progress_callback,
            validate_content,
            access_condition,
            timeout,
            operation_context,
            content_settings=content_settings,
            metadata=self._add_encryption_metadata(metadata, encryption),
        )

        return BlobOutputStream(uploader, block_size, max_connections, encryptor, padder,
                                calculate_md5=self.store_blob_content_md5)

    @staticmethod
    def _add_encryption_metadata(metadata, encryption):
        encryption_data = encryption[2]
        if encryption_data is None:
            return metadata

        metadata = dict(metadata) if metadata else {}
        metadata['encryptiondata'] = encryption_data
        return metadata

    def _put_blob(self, container_name, blob_name, blob, content_settings=None, metadata=None,
                  validate_content=False, access_condition=None, timeout=None, operation_context=None):
        '''
        Creates a blob or updates an existing blob.

        See create_blob_from_* for high level
        functions that handle the creation and upload of large blobs with
        automatic chunking and progress notifications.

        :param bytes blob:
            Content of blob as bytes or a seekable stream.
        :return: ETag and last modified properties for the new Block Blob
        :rtype: :class:`~azstorage.blob.models.ResourceProperties`
        '''
        _validate_not_none('container_name', container_name)
        _validate_not_none('blob_name', blob_name)
        request = HTTPRequest()
        request.method = 'PUT'
        request.host_locations = self._get_host_locations()
        request.path = _get_path(container_name, blob_name)
        request.query = {'timeout': _int_to_str(timeout)}
        request.headers = {'x-ms-blob-type': _to_str(self.blob_type)}
        if content_settings is not None:
            request.headers.update(content_settings.to_headers())
        if access_condition is not None:
            request.headers.update(access_condition.to_headers())
        _add_metadata_headers(metadata, request)
        request.body = blob

        if validate_content:
            request.headers[_HEADER_CONTENT_MD5] = _get_content_md5(request.body)

        return self._perform_request(request, _parse_base_properties, expected_status=(201,),
                                     operation_context=operation_context)

    def _put_block(self, container_name, blob_name, block, block_id,
                   validate_content=False, lease_id=None, timeout=None, operation_context=None):
        _validate_not_none('container_name', container_name)
        _validate_not_none('blob_name', blob_name)
        _validate_not_none('block', block)
        _validate_not_none('block_id', block_id)
        block = _get_data_bytes_only('block', block)
        content_md5 = _get_content_md5(block) if validate_content else None

        def _build_request():
            request = HTTPRequest()
            request.method = 'PUT'
            request.host_locations = self._get_host_locations()
            request.path = _get_path(container_name, blob_name)
            request.query = {
                'comp': 'block',
                'blockid': _encode_base64(_to_str(block_id)),
                'timeout': _int_to_str(timeout),
            }
            request.body = block
            return request

        def _set_headers(request):
            request.headers['x-ms-lease-id'] = _to_str(lease_id)
            request.headers[_HEADER_CONTENT_MD5] = content_md5

        storage_request = _StorageRequest(_build_request,
                                          set_headers=_set_headers,
                                          post_process_response=_parse_base_properties,
                                          expected_status=(201,))
        return self._execute_request(storage_request, operation_context)

    def _put_block_list(
            self, container_name, blob_name, block_list, content_settings=None,
            metadata=None, validate_content=False, access_condition=None, timeout=None,
            operation_context=None):
        _validate_not_none('container_name', container_name)
        _validate_not_none('blob_name', blob_name)
        _validate_not_none('block_list', block_list)
        _validate_block_ids(block_list)
        request = HTTPRequest()
        request.method = 'PUT'
        request.host_locations = self._get_host_locations()
        request.path = _get_path(container_name, blob_name)
        request.query = {
            'comp': 'blocklist',
            'timeout': _int_to_str(timeout),
        }
        request.headers = {}
        if content_settings is not None:
            request.headers.update(content_settings.to_headers())
        if access_condition is not None:
            request.headers.update(access_condition.to_headers())
        _add_metadata_headers(metadata, request)

        # the body is serialized once, so every attempt sends the same bytes
        request.body = _convert_block_list_to_xml(block_list)

        if validate_content:
            request.headers[_HEADER_CONTENT_MD5] = _get_content_md5(request.body)

        return self._perform_request(request, _parse_base_properties, expected_status=(201,),
                                     operation_context=operation_context)
