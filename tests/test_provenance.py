"""
Tests for provenance decoding and commit date parsing.
"""

import json
from datetime import datetime, timedelta, timezone

import pytest

from hubcrawler.errors import ProvenanceDecodeError
from hubcrawler.provenance import OLDEST, decode_provenance, parse_commit_date


def manifest(v1):
    return {'history': [{'v1Compatibility': v1}]}


class TestDecodeProvenance:

    def test_all_labels(self):
        labels = {
            'io.openshift.s2i.build.commit.author': 'Jane Doe <jane@example.com>',
            'io.openshift.s2i.build.commit.date': 'Tue Mar 3 14:02:11 2020 +0100',
            'io.openshift.s2i.build.commit.id': '0123456789abcdef',
            'io.openshift.s2i.build.commit.ref': 'master',
            'io.openshift.s2i.build.source-location': 'https://git.example.com/team/app.git',
            'io.openshift.s2i.build.commit.message': 'Fix login',
            'io.openshift.s2i.build.image': 'python:3.8',
        }
        v1 = json.dumps({'config': {'Env': ['APP_ENV=prod'], 'Labels': labels}})

        provenance = decode_provenance(manifest(v1))

        assert provenance.commit_author == 'Jane Doe <jane@example.com>'
        assert provenance.commit_date == 'Tue Mar 3 14:02:11 2020 +0100'
        assert provenance.commit_sha == '0123456789abcdef'
        assert provenance.short_sha == '01234567'
        assert provenance.ref == 'master'
        assert provenance.source_location == 'https://git.example.com/team/app.git'
        assert provenance.message == 'Fix login'
        assert provenance.base_image == 'python:3.8'
        assert provenance.env_value('APP_ENV') == 'prod'
        assert provenance.env_value('MISSING') == ''

    def test_missing_labels_stay_empty(self):
        provenance = decode_provenance(manifest(json.dumps({'config': {'Labels': None}})))

        assert provenance.is_empty()

    def test_no_config(self):
        assert decode_provenance(manifest('{"id": "abc"}')).is_empty()

    @pytest.mark.parametrize('document', [
        {},
        {'history': []},
        {'history': [{}]},
        {'history': [{'v1Compatibility': '{not json'}]},
        {'history': [{'v1Compatibility': '[1, 2]'}]},
        {'history': [{'v1Compatibility': '42'}]},
        {'history': [{'v1Compatibility': 'null'}]},
        {'history': [{'v1Compatibility': json.dumps({'config': 'oops'})}]},
        {'history': [{'v1Compatibility': json.dumps({'config': {'Labels': ['a']}})}]},
    ])
    def test_malformed(self, document):
        with pytest.raises(ProvenanceDecodeError):
            decode_provenance(document)


class TestParseCommitDate:

    def test_git_default_format(self):
        parsed = parse_commit_date('Tue Mar 3 14:02:11 2020 +0100')

        assert parsed == datetime(2020, 3, 3, 14, 2, 11, tzinfo=timezone(timedelta(hours=1)))

    @pytest.mark.parametrize('value', [None, '', '2020-03-03T14:02:11Z', 'garbage'])
    def test_unparsable_is_oldest(self, value):
        assert parse_commit_date(value) == OLDEST
