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
from json import dumps
from os import urandom

from cryptography.hazmat.primitives.padding import PKCS7

from ..common._encryption import (
    _generate_AES_CBC_cipher,
    _generate_encryption_data_dict,
)
from ..common._error import (
    _validate_key_encryption_key_wrap,
)

# AES256 uses 256 bit (32 byte) keys and always with 16 byte blocks
_CONTENT_ENCRYPTION_KEY_SIZE = 32
_AES_BLOCK_SIZE = 16


def _generate_blob_encryption_data(key_encryption_key):
    '''
    Generates the encryption_metadata for the blob.

    :param object key_encryption_key:
        The key-encryption-key used to wrap the cek associate with this blob.
    :return: A tuple containing the cek and iv for this blob as well as the
        serialized encryption metadata for the blob.
    :rtype: (bytes, bytes, str)
    '''
    encryption_data = None
    content_encryption_key = None
    initialization_vector = None
    if key_encryption_key:
        _validate_key_encryption_key_wrap(key_encryption_key)
        content_encryption_key = urandom(_CONTENT_ENCRYPTION_KEY_SIZE)
        initialization_vector = urandom(_AES_BLOCK_SIZE)
        encryption_data = _generate_encryption_data_dict(key_encryption_key,
                                                         content_encryption_key,
                                                         initialization_vector)
        encryption_data['EncryptionMode'] = 'FullBlob'
        encryption_data = dumps(encryption_data)

    return content_encryption_key, initialization_vector, encryption_data


def _get_blob_encryptor_and_padder(cek, iv, should_pad):
    encryptor = None
    padder = None

    if cek is not None and iv is not None:
        cipher = _generate_AES_CBC_cipher(cek, iv)
        encryptor = cipher.encryptor()
        # PKCS7 with 16 byte blocks ensures compatibility with AES.
        padder = PKCS7(128).padder() if should_pad else None

    return encryptor, padder


def _get_encrypted_length(length):
    # PKCS7 always adds between 1 and 16 bytes of padding
    return (length // _AES_BLOCK_SIZE + 1) * _AES_BLOCK_SIZE


def _encrypt_stream_if_under_threshold(stream, length, max_length, cek, iv):
    '''
    Reads length bytes from the stream and returns them padded and encrypted,
    as long as the ciphertext fits in max_length bytes. Returns None, without
    reading, if it would not.
    '''
    if length is None or _get_encrypted_length(length) > max_length:
        return None

    encryptor, padder = _get_blob_encryptor_and_padder(cek, iv, True)
    data = stream.read(length)
    padded_data = padder.update(data) + padder.finalize()
    return encryptor.update(padded_data) + encryptor.finalize()
