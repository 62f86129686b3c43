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
from xml.etree import ElementTree as ETree

from ..common._common_conversion import _decode_base64_to_text
from ..common._deserialization import (
    _get_etag,
    _get_last_modified,
    _get_request_server_encrypted,
    _to_int,
)
from .models import (
    Blob,
    BlobBlock,
    BlobBlockList,
    BlobBlockState,
    BlobProperties,
    PageBlobProperties,
    PageRange,
    ResourceProperties,
)


def _parse_base_properties(response):
    '''
    Extracts basic response headers.
    '''
    resource_properties = ResourceProperties()
    resource_properties.last_modified = _get_last_modified(response)
    resource_properties.etag = _get_etag(response)
    resource_properties.request_server_encrypted = _get_request_server_encrypted(response)

    return resource_properties


def _parse_page_properties(response):
    '''
    Extracts page response headers.
    '''
    put_page = PageBlobProperties()
    put_page.last_modified = _get_last_modified(response)
    put_page.etag = _get_etag(response)
    put_page.request_server_encrypted = _get_request_server_encrypted(response)
    put_page.sequence_number = _to_int(response.headers.get('x-ms-blob-sequence-number'))

    return put_page


def _parse_metadata(response):
    '''
    Extracts out resource metadata information.
    '''

    if response is None or response.headers is None:
        return None

    metadata = {}
    for key, value in response.headers.items():
        if key.lower().startswith('x-ms-meta-'):
            metadata[key[10:]] = value

    return metadata


def _parse_blob(response, blob_name):
    '''
    Builds a Blob from the headers of a blob properties response.
    '''
    headers = response.headers

    props = BlobProperties()
    props.blob_type = headers.get('x-ms-blob-type')
    props.last_modified = _get_last_modified(response)
    props.etag = _get_etag(response)
    props.content_length = _to_int(headers.get('content-length'))
    props.page_blob_sequence_number = _to_int(headers.get('x-ms-blob-sequence-number'))
    props.server_encrypted = headers.get('x-ms-server-encrypted') == 'true'
    props.content_settings.content_type = headers.get('content-type')
    props.content_settings.content_encoding = headers.get('content-encoding')
    props.content_settings.content_language = headers.get('content-language')
    props.content_settings.content_disposition = headers.get('content-disposition')
    props.content_settings.cache_control = headers.get('cache-control')
    props.content_settings.content_md5 = headers.get('content-md5')

    return Blob(blob_name, props, _parse_metadata(response))


def _convert_xml_to_block_list(response):
    '''
    <?xml version="1.0" encoding="utf-8"?>
    <BlockList>
      <CommittedBlocks>
         <Block>
            <Name>base64-encoded-block-id</Name>
            <Size>size-in-bytes</Size>
         </Block>
      </CommittedBlocks>
      <UncommittedBlocks>
        <Block>
          <Name>base64-encoded-block-id</Name>
          <Size>size-in-bytes</Size>
        </Block>
      </UncommittedBlocks>
     </BlockList>

    Converts xml response to block list class.
    '''
    if response is None or response.body is None:
        return None

    block_list = BlobBlockList()

    list_element = ETree.fromstring(response.body)

    committed_blocks_element = list_element.find('CommittedBlocks')
    if committed_blocks_element is not None:
        for block_element in committed_blocks_element.findall('Block'):
            block_id = _decode_base64_to_text(block_element.findtext('Name', ''))
            block_size = int(block_element.findtext('Size'))
            block = BlobBlock(id=block_id, state=BlobBlockState.Committed)
            block._set_size(block_size)
            block_list.committed_blocks.append(block)

    uncommitted_blocks_element = list_element.find('UncommittedBlocks')
    if uncommitted_blocks_element is not None:
        for block_element in uncommitted_blocks_element.findall('Block'):
            block_id = _decode_base64_to_text(block_element.findtext('Name', ''))
            block_size = int(block_element.findtext('Size'))
            block = BlobBlock(id=block_id, state=BlobBlockState.Uncommitted)
            block._set_size(block_size)
            block_list.uncommitted_blocks.append(block)

    return block_list


def _convert_xml_to_page_ranges(response):
    '''
    <?xml version="1.0" encoding="utf-8"?>
    <PageList>
       <PageRange>
          <Start>Start Byte</Start>
          <End>End Byte</End>
       </PageRange>
       <PageRange>
          <Start>Start Byte</Start>
          <End>End Byte</End>
       </PageRange>
    </PageList>
    '''
    if response is None or response.body is None:
        return None

    page_list = list()

    list_element = ETree.fromstring(response.body)

    for page_range_element in list_element.findall('PageRange'):
        page_list.append(
            PageRange(
                int(page_range_element.findtext('Start')),
                int(page_range_element.findtext('End'))
            )
        )

    return page_list
