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
    _int_to_str,
    _to_str,
)
from ..common._constants import (
    DEFAULT_PROTOCOL,
    SERVICE_HOST_BASE,
)
from ..common._error import (
    _validate_not_none,
)
from ..common._http import HTTPRequest
from ..common.storageclient import StorageClient
from ._constants import X_MS_VERSION
from ._deserialization import _parse_blob
from ._serialization import _get_path


class BaseBlobService(StorageClient):
    '''
    This is the main class managing Blob resources.

    The Blob service stores text and binary data as blobs in the cloud.
    The Blob service offers the following three resources: the storage account,
    containers, and blobs. Within your storage account, containers provide a
    way to organize sets of blobs. For more information please see:
    https://msdn.microsoft.com/en-us/library/azure/ee691964.aspx

    :ivar object key_encryption_key:
        The key-encryption-key optionally provided by the user. If provided, will be used to
        encrypt blobs. Must implement the following methods:
        wrap_key(key)--wraps the specified key (bytes) using an algorithm of the user's choice. Returns the encrypted key as bytes.
        get_key_wrap_algorithm()--returns the algorithm used to wrap the specified symmetric key.
        get_kid()--returns a string key id for this key-encryption-key.
    :ivar bool require_encryption:
        A flag that may be set to ensure that all blobs uploaded by this service are encrypted
        on the client. If this flag is set, key_encryption_key must be provided, and operations
        which cannot encrypt, such as writing a single block or page, raise a ValueError.
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
            account name. For example '127.0.0.1:10000/devstoreaccount1'.
        :param str secondary_endpoint:
            The host to send reads to when reading from secondary.
        :param requests.Session request_session:
            The session object to use for http requests.
        '''
        super(BaseBlobService, self).__init__(
            'blob', account_name, sas_token, protocol, endpoint_suffix,
            primary_endpoint, secondary_endpoint, request_session)

        self._X_MS_VERSION = X_MS_VERSION
        self.require_encryption = False
        self.key_encryption_key = None

    def make_blob_url(self, container_name, blob_name, protocol=None, sas_token=None):
        '''
        Creates the url to access a blob.

        :param str container_name:
            Name of container.
        :param str blob_name:
            Name of blob.
        :param str protocol:
            Protocol to use: 'http' or 'https'. If not specified, uses the
            protocol specified when BaseBlobService was initialized.
        :param str sas_token:
            Shared access signature token created with
            generate_shared_access_signature.
        :return: blob access URL.
        :rtype: str
        '''

        url = '{}://{}/{}/{}'.format(
            protocol or self.protocol,
            self.primary_endpoint,
            container_name,
            blob_name,
        )

        if sas_token:
            url += '?' + sas_token

        return url

    def get_blob_properties(self, container_name, blob_name, snapshot=None, access_condition=None,
                            timeout=None, operation_context=None):
        '''
        Returns all user-defined metadata, standard HTTP properties, and
        system properties for the blob. It does not return the content of the blob.
        Returns :class:`~azstorage.blob.models.Blob`
        with :class:`~azstorage.blob.models.BlobProperties` and a metadata dict.

        :param str container_name:
            Name of existing container.
        :param str blob_name:
            Name of existing blob.
        :param str snapshot:
            The snapshot parameter is an opaque DateTime value that,
            when present, specifies the blob snapshot to retrieve.
        :param ~azstorage.blob.models.AccessCondition access_condition:
            Conditions the request only succeeds under.
        :param int timeout:
            The timeout parameter is expressed in seconds.
        :param ~azstorage.common.models.OperationContext operation_context:
            Tracks the attempts of the request.
        :return: a blob object including properties and metadata.
        :rtype: :class:`~azstorage.blob.models.Blob`
        '''
        _validate_not_none('container_name', container_name)
        _validate_not_none('blob_name', blob_name)
        request = HTTPRequest()
        request.method = 'HEAD'
        request.host_locations = self._get_host_locations(secondary=True)
        request.path = _get_path(container_name, blob_name)
        request.query = {
            'snapshot': _to_str(snapshot),
            'timeout': _int_to_str(timeout),
        }
        if access_condition is not None:
            request.headers.update(access_condition.to_headers())

        return self._perform_request(request, _parse_blob, [blob_name],
                                     operation_context=operation_context)
